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
"""
manual_acme_dns obtains or renews a certificate from an ACME certificate authority (Let's Encrypt by default) using the
DNS-01 challenge, where a human publishes the TXT record by hand. A fresh ACME account is registered on every run; no
account state is kept between runs.
"""
import enum
import logging

from . import challenge
from . import encoder
from . import errors
from . import keys
from .config import Config
from .transport import ACMETransport, LETSENCRYPT_DIRECTORY, LETSENCRYPT_STAGING_DIRECTORY


# Constants and Variables
DEFAULT_VALIDATION_TIMEOUT = 60
DEFAULT_POLL_INTERVAL = 2
DEFAULT_FINALIZE_TIMEOUT = 90
ORGANIZATIONAL_UNIT = 'IT'
__pdoc__ = {"tests": False}    # Excludes 'tests' submodule from documentation

logger = logging.getLogger(__name__)


class State(enum.Enum):
    """The states an issuance session moves through."""
    START = 'Start'
    ACCOUNT_CREATED = 'AccountCreated'
    ORDER_CREATED = 'OrderCreated'
    AUTHORIZATION_FETCHED = 'AuthorizationFetched'
    CHALLENGE_SURFACED = 'ChallengeSurfaced'
    AWAITING_OPERATOR_CONFIRMATION = 'AwaitingOperatorConfirmation'
    VALIDATION_REQUESTED = 'ValidationRequested'
    VALIDATING = 'Validating'
    VALIDATED = 'Validated'
    FINALIZING = 'Finalizing'
    ISSUED = 'Issued'
    FAILED = 'Failed'


class Operator:
    """
    The human on the other side of the run. Subclasses decide how the DNS record is shown and how confirmation is
    collected; `confirm()` may block for as long as the operator needs.
    """

    def present_challenge(self, record_name: str, record_value: str) -> None:
        """Shows the TXT record that must be published."""
        raise NotImplementedError()

    def confirm(self, message: str) -> bool:
        """Blocks until the operator decides. Returns True to proceed, False to abort."""
        raise NotImplementedError()


class ConsoleOperator(Operator):
    """An operator answering on the terminal by pressing `Y`."""

    def __init__(self, input_func=input, print_func=print) -> None:
        self.input = input_func
        self.print = print_func

    def present_challenge(self, record_name: str, record_value: str) -> None:
        self.print()
        self.print("DNS challenge required:")
        self.print(f"    update TXT record for {record_name}")
        self.print(f"    {record_value}")
        self.print()

    def confirm(self, message: str) -> bool:
        """
        Prints `message` and re-prompts until `Y` is entered. End of input or Ctrl-C at the prompt counts as an abort.
        """
        if message:
            self.print(message)

        try:
            while self.input("Press Y to continue... ").strip().lower() != 'y':
                continue
        except (EOFError, KeyboardInterrupt):
            self.print()
            return False

        self.print("Please wait...")
        return True


class IssuanceSession:
    """
    Drives one certificate issuance from account registration to the encoded artifacts. Each session generates and
    owns its account key, certificate key and transport, so several sessions may run side by side.
    """
    # This class mirrors a linear protocol, keeping every step's collaborators on the object keeps `run()` readable.
    # pylint: disable=too-many-instance-attributes,too-many-arguments

    def __init__(
            self,
            config: Config,
            operator: Operator,
            directory: str = LETSENCRYPT_DIRECTORY,
            transport_factory=ACMETransport,
            account_key_type: str = 'ec256',
            certificate_key_type: str = 'ec256',
            validation_timeout: float = DEFAULT_VALIDATION_TIMEOUT,
            poll_interval: float = DEFAULT_POLL_INTERVAL,
            finalize_timeout: float = DEFAULT_FINALIZE_TIMEOUT,
            propagation_check=None,
            friendly_name: str = None
    ) -> None:
        """
        Args:
            config (manual_acme_dns.config.Config): The certificate description.
            operator (manual_acme_dns.Operator): Shows the DNS record and confirms its publication.
            directory (str): The ACME directory URL to interact with.
            transport_factory (callable): Builds the transport from `(account_key, directory=...)`.
            account_key_type (str): Key type of the per-run ACME account key.
            certificate_key_type (str): Key type of the certificate private key.
            validation_timeout (float): The amount of time (in seconds) to wait for the challenge verdict.
            poll_interval (float): The amount of time (in seconds) between challenge status queries.
            finalize_timeout (float): The amount of time (in seconds) to wait for the certificate after finalization.
            propagation_check (callable): Optional `(record_name, record_value) -> bool` run after the operator
                confirms. A False result is only logged.
            friendly_name (str): Friendly name stored in the PFX bundle.

        Examples:
            >>> import manual_acme_dns
            >>> session = manual_acme_dns.IssuanceSession(
            ...     config=manual_acme_dns.Config.load_from_file("example.json"),
            ...     operator=manual_acme_dns.ConsoleOperator(),
            ...     directory=manual_acme_dns.LETSENCRYPT_STAGING_DIRECTORY
            ... )
            >>> session.run().save(".", "example")
        """
        self.config = config
        self.operator = operator
        self.directory = directory
        self.transport_factory = transport_factory
        self.account_key_type = account_key_type
        self.certificate_key_type = certificate_key_type
        self.validation_timeout = validation_timeout
        self.poll_interval = poll_interval
        self.finalize_timeout = finalize_timeout
        self.propagation_check = propagation_check
        self.friendly_name = friendly_name
        self.state = State.START
        self.history = [State.START]
        self.error = None
        self.record = None
        self.issued = None

    @property
    def reason(self) -> str:
        """The human-readable failure reason, or None unless the session failed."""
        return self.error.message if self.error else None

    def run(self) -> encoder.Artifacts:
        """
        Runs the issuance. The session blocks while the operator publishes the DNS record.

        Returns:
            manual_acme_dns.encoder.Artifacts: The encoded certificate, chain, private key and optional PFX bundle.

        Raises:
            manual_acme_dns.errors.ManualACMEError: The error that moved the session to `State.FAILED`. Failed steps
                are never retried; a new session is required.
        """
        if self.state != State.START:
            raise errors.ManualACMEError(f"Session already ran and ended in state '{self.state.value}'.")

        try:
            return self._issue()
        except errors.ManualACMEError as error:
            self.error = error
            self._transition(State.FAILED)
            logger.error("Issuance failed: %s", error.message)
            raise

    def _issue(self) -> encoder.Artifacts:
        domain = self.config.domain

        account_key = keys.generate_account_key(self.account_key_type)
        transport = self.transport_factory(account_key, directory=self.directory)
        account = transport.create_account(self.config.notify_email, terms_of_service_agreed=True)
        self._transition(State.ACCOUNT_CREATED)

        order = transport.create_order(account, [domain])
        self._transition(State.ORDER_CREATED)

        # Single domain orders carry exactly one authorization
        authorization = transport.fetch_authorizations(order)[0]
        self._transition(State.AUTHORIZATION_FETCHED)

        dns_challenge = transport.select_dns_challenge(authorization)
        self.record = challenge.compute_dns_authorization(dns_challenge, account_key)
        self.operator.present_challenge(*self.record)
        self._transition(State.CHALLENGE_SURFACED)

        if not self.operator.confirm("Publish the TXT record above, then confirm to request validation."):
            raise errors.OperatorAbort("Aborted by operator before validation was requested.")
        self._transition(State.AWAITING_OPERATOR_CONFIRMATION)

        if self.propagation_check and not self.propagation_check(*self.record):
            logger.warning("TXT record %s is not visible yet, requesting validation anyway", self.record[0])

        transport.request_validation(dns_challenge)
        self._transition(State.VALIDATION_REQUESTED)
        self._transition(State.VALIDATING)
        transport.poll_until_validated(dns_challenge, max_wait=self.validation_timeout,
                                       poll_interval=self.poll_interval)
        self._transition(State.VALIDATED)

        certificate_key = keys.generate_private_key(self.certificate_key_type)
        csr = keys.generate_csr(
            certificate_key,
            common_name=domain,
            country_name=self.config.country_name,
            state=self.config.state,
            locality=self.config.locality,
            organization=self.config.organization,
            organizational_unit=ORGANIZATIONAL_UNIT
        )
        self._transition(State.FINALIZING)
        self.issued = transport.finalize_order(order, csr, max_wait=self.finalize_timeout)
        self._transition(State.ISSUED)

        return encoder.encode(self.issued, certificate_key, self.config.pfx_password, self.friendly_name)

    def _transition(self, state: State) -> None:
        logger.info("%s -> %s", self.state.value, state.value)
        self.state = state
        self.history.append(state)
