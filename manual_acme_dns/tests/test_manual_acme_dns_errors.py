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
"""Test error functionality with the manual_acme_dns package."""
import unittest

import manual_acme_dns
from manual_acme_dns import errors
from manual_acme_dns.tests import TEST_DOMAIN, TEST_EMAIL


class TestManualAcmeDnsErrors(unittest.TestCase):
    """Checks to ensure exception classes used by manual_acme_dns are raised when expected."""

    def test_error_hierarchy(self):
        """Checks that every error can be caught as a ManualACMEError and carries its message."""
        # Variables
        error_classes = [
            errors.ConfigError,
            errors.InvalidPath,
            errors.CryptoError,
            errors.ProtocolError,
            errors.UnsupportedChallengeError,
            errors.ValidationFailedError,
            errors.ValidationTimeoutError,
            errors.FinalizationError,
            errors.EncodingError,
            errors.OperatorAbort,
        ]

        for error_class in error_classes:
            with self.assertRaises(errors.ManualACMEError) as context:
                raise error_class("Something went wrong.")
            self.assertEqual(context.exception.message, "Something went wrong.")
            self.assertEqual(str(context.exception), "Something went wrong.")

    def test_error_details(self):
        """Checks that protocol level errors keep the server's problem code and detail."""
        # Variables
        protocol_error = errors.ProtocolError("Request failed", code="badNonce", detail="JWS has an invalid nonce")
        validation_error = errors.ValidationFailedError("Validation failed", detail="No TXT record found")
        finalization_error = errors.FinalizationError("Finalization failed")

        self.assertEqual(protocol_error.code, "badNonce")
        self.assertEqual(protocol_error.detail, "JWS has an invalid nonce")
        self.assertEqual(validation_error.detail, "No TXT record found")
        self.assertIsNone(finalization_error.detail)

    def test_config_verification(self):
        """Checks that invalid values are refused when set on a Config."""
        # Variables
        config = manual_acme_dns.Config()

        # Ensure each required value is reported missing until it is set
        with self.assertRaises(errors.ConfigError):
            config.validate()

        # Ensure invalid values are refused and valid ones accepted
        with self.assertRaises(errors.ConfigError):
            config.domain = "INVALID DOMAIN"
        with self.assertRaises(errors.ConfigError):
            config.notify_email = "INVALID EMAIL"
        with self.assertRaises(errors.ConfigError):
            config.pfx_password = ""
        config.domain = TEST_DOMAIN
        config.notify_email = TEST_EMAIL
        self.assertEqual(config.domain, TEST_DOMAIN)

    def test_operator_interface(self):
        """Checks that the base Operator must be subclassed."""
        # Variables
        operator = manual_acme_dns.Operator()

        with self.assertRaises(NotImplementedError):
            operator.present_challenge("_acme-challenge.example.com", "value")
        with self.assertRaises(NotImplementedError):
            operator.confirm("Continue?")


if __name__ == "__main__":
    unittest.main()
