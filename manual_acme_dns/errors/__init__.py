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
"""Custom exception classes for manual_acme_dns."""


class ManualACMEError(Exception):
    """Base class for every error raised by manual_acme_dns."""
    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ConfigError(ManualACMEError):
    """Error occurs when a configuration value is missing or malformed"""


class InvalidPath(ManualACMEError):
    """Error occurs when a requested file or directory path does not exist"""


class CryptoError(ManualACMEError):
    """Error occurs when a key or CSR cannot be generated"""


class ProtocolError(ManualACMEError):
    """Error occurs when the ACME server rejects a request or cannot be reached"""
    def __init__(self, message: str, code: str = None, detail: str = None) -> None:
        super().__init__(message)
        self.code = code
        self.detail = detail


class UnsupportedChallengeError(ManualACMEError):
    """Error occurs when the requested ACME server does not offer the DNS-01 challenge"""


class ValidationFailedError(ManualACMEError):
    """Error occurs when the ACME server marks the DNS-01 challenge invalid"""
    def __init__(self, message: str, detail: str = None) -> None:
        super().__init__(message)
        self.detail = detail


class ValidationTimeoutError(ManualACMEError):
    """Error occurs when the ACME server gives no validation verdict before the deadline"""


class FinalizationError(ManualACMEError):
    """Error occurs when the ACME server refuses to finalize the order or issue the certificate"""
    def __init__(self, message: str, detail: str = None) -> None:
        super().__init__(message)
        self.detail = detail


class EncodingError(ManualACMEError):
    """Error occurs when the issued certificate cannot be encoded with the certificate key"""


class OperatorAbort(ManualACMEError):
    """Error occurs when the operator declines to continue"""
