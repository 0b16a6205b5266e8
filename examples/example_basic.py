# Copyright 2025 Jared Hendrickson
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#    http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
import sys

import manual_acme_dns
from manual_acme_dns.tools import wait_for_txt_record


class PropagationOperator(manual_acme_dns.Operator):
    """An operator that asks for the record to be published, then waits for DNS to catch up instead of prompting."""

    def __init__(self):
        self.record = None

    def present_challenge(self, record_name, record_value):
        self.record = (record_name, record_value)
        print(f"Publish TXT record {record_name} with value {record_value}")

    def confirm(self, message):
        # Keep checking DNS for the record for 1200 seconds (20 minutes) before giving up.
        return wait_for_txt_record(*self.record, nameservers=["8.8.8.8", "1.1.1.1"], timeout=1200)


# Describe the certificate to request
config = manual_acme_dns.Config(
    domain="test.example.com",
    notify_email="user@example.com",
    pfx_password="asdf",
    country_name="GB",
    state="London",
    locality="London",
)

# Run the issuance against the Let's Encrypt staging environment
session = manual_acme_dns.IssuanceSession(
    config,
    PropagationOperator(),
    directory=manual_acme_dns.LETSENCRYPT_STAGING_DIRECTORY,
)

try:
    artifacts = session.run()
except manual_acme_dns.errors.ManualACMEError as error:
    print(f"Failed to issue certificate for {config.domain}: {error.message}")
    sys.exit(1)

print(artifacts.leaf_cert)
print("Written:", artifacts.save(".", "test.example.com"))
