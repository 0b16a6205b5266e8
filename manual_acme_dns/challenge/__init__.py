# Copyright 2023 Jared Hendrickson
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
"""Derives the DNS TXT record an operator must publish to answer a DNS-01 challenge."""
from acme import challenges

from .. import errors


# Constants and Variables
DNS_LABEL = '_acme-challenge'
WILDCARD_PREFIX = '*.'


def strip_wildcard(domain: str) -> str:
    """
    Strips the wildcard portion of a domain (*.) if present. Only one leading wildcard label is removed.

    Args:
        domain (str): The domain string to strip wildcards from.

    Returns:
        str: The domain string without the wildcard portion.
    """
    return domain[len(WILDCARD_PREFIX):] if domain.startswith(WILDCARD_PREFIX) else domain


def dns_record_name(domain: str) -> str:
    """Returns the `_acme-challenge` TXT record name for a (possibly wildcard) domain."""
    return f"{DNS_LABEL}.{strip_wildcard(domain)}"


def compute_dns_authorization(challenge, account_key) -> tuple:
    """
    Computes the TXT record name and value that answer a DNS-01 challenge. The value is the base64url encoded SHA-256
    digest of the key authorization `token || "." || base64url(JWK thumbprint)`. No network access is made.

    Args:
        challenge (manual_acme_dns.models.DNSChallenge): The DNS-01 challenge selected from the authorization.
        account_key (manual_acme_dns.keys.AccountKey): The account key the ACME requests are signed with.

    Returns:
        tuple: The record name and record value, e.g.
            `("_acme-challenge.example.com", "LPsIwTo7o8BoG0-vjCyGQGBWSVIPxI-i_X336eUOQZo")`

    Raises:
        manual_acme_dns.errors.UnsupportedChallengeError: When the challenge is not a DNS-01 challenge.
    """
    if not isinstance(challenge.chall, challenges.DNS01):
        raise errors.UnsupportedChallengeError(f"Challenge at '{challenge.uri}' is not a DNS-01 challenge.")

    return dns_record_name(challenge.domain), challenge.chall.validation(account_key.jwk)
