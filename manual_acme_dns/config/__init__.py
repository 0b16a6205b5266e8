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
"""Loading and validation of the JSON file describing the certificate to issue."""
import json
import logging
import pathlib

import validators

from .. import errors
from ..challenge import strip_wildcard


# Maps JSON keys (lower-cased, underscores removed) to Config attributes
FIELDS = {
    'domain': 'domain',
    'notifyemail': 'notify_email',
    'pfxpassword': 'pfx_password',
    'countryname': 'country_name',
    'state': 'state',
    'locality': 'locality',
}
TEMPLATE = {
    'domain': 'example.com',
    'notifyEmail': 'me@example.com',
    'pfxPassword': 'asdf',
    'countryName': 'GB',
    'state': 'London',
    'locality': 'London',
}

logger = logging.getLogger(__name__)


class Config:
    """
    The values describing one certificate: the domain, the account contact email, the CSR subject fields and the
    optional PFX password. A Config is built once and passed to the orchestrator.
    """
    # pylint: disable=too-many-instance-attributes,too-many-arguments

    def __init__(
            self,
            domain: str = None,
            notify_email: str = None,
            pfx_password: str = None,
            country_name: str = None,
            state: str = None,
            locality: str = None
    ) -> None:
        """
        Args:
            domain (str): The domain name to request a certificate for. May be a wildcard name (`*.example.com`).
            notify_email (str): The contact email registered with the ACME account.
            pfx_password (str): The password protecting the PFX bundle. No bundle is produced when this is None.
            country_name (str): The two-letter country code of the CSR subject.
            state (str): The state or province of the CSR subject.
            locality (str): The locality of the CSR subject.

        Raises:
            manual_acme_dns.errors.ConfigError: When a provided value is invalid.
        """
        self._domain = None
        self._notify_email = None
        self._country_name = None
        self._state = None
        self._locality = None
        self.pfx_password = pfx_password

        # Only validate the values that were provided, missing values are reported when referenced
        for attribute, value in (('domain', domain), ('notify_email', notify_email), ('country_name', country_name),
                                 ('state', state), ('locality', locality)):
            if value is not None:
                setattr(self, attribute, value)

    def validate(self) -> 'Config':
        """
        Checks that every required value is present.

        Raises:
            manual_acme_dns.errors.ConfigError: When a required value is missing.
        """
        for attribute in ('domain', 'notify_email', 'country_name', 'state', 'locality'):
            getattr(self, attribute)

        return self

    @property
    def organization(self) -> str:
        """The organization subject field, which is the domain without its wildcard label."""
        return strip_wildcard(self.domain)

    @staticmethod
    def load(json_data: str) -> 'Config':
        """
        Loads a Config from a JSON string. Keys are matched case-insensitively, so `notifyEmail`, `NotifyEmail` and
        `notify_email` are all accepted.

        Args:
            json_data (str): The JSON configuration string.

        Returns:
            manual_acme_dns.config.Config: The validated Config.

        Raises:
            manual_acme_dns.errors.ConfigError: When the JSON is malformed, a value is invalid or a required value is
                missing.

        Examples:
            >>> Config.load('{"domain": "example.com", "notifyEmail": "me@example.com", ...}')
        """
        try:
            data = json.loads(json_data)
        except ValueError as error:
            raise errors.ConfigError(f"Could not parse config: {error}") from error

        if not isinstance(data, dict):
            raise errors.ConfigError("Config must be a JSON object.")

        values = {}
        for key, value in data.items():
            attribute = FIELDS.get(key.lower().replace('_', ''))
            if attribute is None:
                logger.warning("Ignoring unknown config key '%s'", key)
                continue
            if value is not None and not isinstance(value, str):
                raise errors.ConfigError(f"Config value '{key}' must be a string.")
            values[attribute] = value

        return Config(**values).validate()

    @staticmethod
    def load_from_file(filepath: str) -> 'Config':
        """
        Loads a Config from a JSON file.

        Raises:
            manual_acme_dns.errors.InvalidPath: When the file does not exist.
            manual_acme_dns.errors.ConfigError: When the file cannot be parsed or holds invalid values.
        """
        filepath = pathlib.Path(filepath).absolute()

        # Ensure our file exists, throw an error otherwise
        if not filepath.is_file():
            raise errors.InvalidPath(f"No config file found at '{filepath}'")

        with open(filepath, 'r', encoding='utf-8') as config_file:
            json_data = config_file.read()

        try:
            return Config.load(json_data)
        except errors.ConfigError as error:
            raise errors.ConfigError(f"Invalid config file '{filepath}': {error.message}") from error

    @staticmethod
    def template() -> str:
        """Returns an example config as a JSON string."""
        return json.dumps(TEMPLATE, indent=4)

    @staticmethod
    def write_template(filepath: str) -> None:
        """
        Writes an example config to `filepath`.

        Raises:
            manual_acme_dns.errors.InvalidPath: When the parent directory does not exist.
        """
        filepath = pathlib.Path(filepath).absolute()

        if not filepath.parent.is_dir():
            raise errors.InvalidPath(f"Directory at '{filepath.parent}' does not exist.")

        with open(filepath, 'w', encoding='utf-8') as config_file:
            config_file.write(Config.template())

    @property
    def domain(self) -> str:
        """
        Getter for the `domain` property.

        Raises:
            manual_acme_dns.errors.ConfigError: When `domain` is not set.
        """
        if not self._domain:
            raise errors.ConfigError("No domain found. You must set the domain value first.")

        return self._domain

    @domain.setter
    def domain(self, value: str) -> None:
        """
        Setter for the `domain` property. The value, minus a leading wildcard label, must be an RFC2181 compliant
        hostname.
        """
        if not isinstance(value, str) or not validators.domain(strip_wildcard(value)):
            raise errors.ConfigError(f"Invalid domain name '{value}'. Domain name must adhere to RFC2181.")

        self._domain = value

    @property
    def notify_email(self) -> str:
        """
        Getter for the `notify_email` property.

        Raises:
            manual_acme_dns.errors.ConfigError: When `notify_email` is not set.
        """
        if not self._notify_email:
            raise errors.ConfigError("No notify email found. You must set the notify_email value first.")

        return self._notify_email

    @notify_email.setter
    def notify_email(self, value: str) -> None:
        if not isinstance(value, str) or not validators.email(value):
            raise errors.ConfigError(f"Value '{value}' is not a valid email address.")

        self._notify_email = value

    @property
    def pfx_password(self) -> str:
        """The PFX bundle password, or None when no bundle should be produced."""
        return self._pfx_password

    @pfx_password.setter
    def pfx_password(self, value: str) -> None:
        if value is not None and (not isinstance(value, str) or not value):
            raise errors.ConfigError("PFX password must be a non-empty string when set.")

        self._pfx_password = value

    @property
    def country_name(self) -> str:
        if not self._country_name:
            raise errors.ConfigError("No country name found. You must set the country_name value first.")

        return self._country_name

    @country_name.setter
    def country_name(self, value: str) -> None:
        if not isinstance(value, str) or len(value) != 2 or not value.isalpha():
            raise errors.ConfigError(f"Value '{value}' is not a two-letter country code.")

        self._country_name = value.upper()

    @property
    def state(self) -> str:
        if not self._state:
            raise errors.ConfigError("No state found. You must set the state value first.")

        return self._state

    @state.setter
    def state(self, value: str) -> None:
        if not isinstance(value, str) or not value.strip():
            raise errors.ConfigError("State must be a non-empty string.")

        self._state = value

    @property
    def locality(self) -> str:
        if not self._locality:
            raise errors.ConfigError("No locality found. You must set the locality value first.")

        return self._locality

    @locality.setter
    def locality(self, value: str) -> None:
        if not isinstance(value, str) or not value.strip():
            raise errors.ConfigError("Locality must be a non-empty string.")

        self._locality = value
