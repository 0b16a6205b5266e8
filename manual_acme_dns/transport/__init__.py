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
ACME v2 transport used by the issuance orchestrator. Requests are signed and their anti-replay nonces are managed by
`acme.client.ClientNetwork`; this module speaks the account, order, authorization, challenge and finalization
resources on top of it and turns library failures into `manual_acme_dns.errors` exceptions.
"""
import logging
import time

import josepy as jose
import requests
import validators
from acme import challenges
from acme import client
from acme import errors as acme_errors
from acme import messages
from cryptography import x509
from cryptography.hazmat.primitives.serialization import Encoding

from .. import errors
from ..models import DNSChallenge, IssuedCertificate


# Constants and Variables
LETSENCRYPT_DIRECTORY = "https://acme-v02.api.letsencrypt.org/directory"
LETSENCRYPT_STAGING_DIRECTORY = "https://acme-staging-v02.api.letsencrypt.org/directory"
USER_AGENT = 'manual_acme_dns/1.0'
BAD_NONCE = 'badNonce'
NETWORK_ERRORS = (acme_errors.Error, requests.exceptions.RequestException, ValueError)

logger = logging.getLogger(__name__)


class ACMETransport:
    """
    A minimal ACME v2 client bound to one account key. Each instance owns its own `ClientNetwork` and therefore its
    own nonce pool, so independent issuances never share protocol state.
    """
    # pylint: disable=too-many-arguments

    def __init__(
            self,
            account_key,
            directory: str = LETSENCRYPT_DIRECTORY,
            verify_ssl: bool = True,
            user_agent: str = USER_AGENT,
            sleep=time.sleep,
            clock=time.monotonic
    ) -> None:
        """
        Args:
            account_key (manual_acme_dns.keys.AccountKey): The key every request is signed with.
            directory (str): The ACME directory URL to interact with.
            verify_ssl (bool): Verify the SSL certificate of the ACME server when making requests.
            user_agent (str): The User-Agent header sent with every request.
            sleep (callable): Called with a number of seconds to wait between status polls.
            clock (callable): Returns the current time in seconds, used to enforce polling deadlines.
        """
        self.account_key = account_key
        self.directory_url = directory
        self.net = client.ClientNetwork(
            account_key.jwk, alg=account_key.alg, verify_ssl=verify_ssl, user_agent=user_agent
        )
        self.sleep = sleep
        self.clock = clock
        self._directory = None

    @property
    def directory(self) -> messages.Directory:
        """The ACME directory resource, fetched on first use."""
        if self._directory is None:
            try:
                self._directory = messages.Directory.from_json(self.net.get(self.directory_url).json())
            except NETWORK_ERRORS + (jose.DeserializationError,) as error:
                raise self._protocol_error(f"Unable to load ACME directory '{self.directory_url}'", error) from error

        return self._directory

    def create_account(self, email: str, terms_of_service_agreed: bool = True) -> messages.RegistrationResource:
        """
        Registers a new ACME account for the transport's account key. By running this method, you are agreeing to the
        ACME server's terms of service.

        Args:
            email (str): The contact email address for the account.
            terms_of_service_agreed (bool): Whether the terms of service are accepted.

        Returns:
            acme.messages.RegistrationResource: The registered account.

        Raises:
            manual_acme_dns.errors.ConfigError: When `email` is not a valid email address.
            manual_acme_dns.errors.ProtocolError: When the ACME server rejects the registration.
        """
        if not email or not validators.email(email):
            raise errors.ConfigError(f"Value '{email}' is not a valid email address.")

        # New accounts must be signed with the bare JWK rather than a key ID
        self.net.account = None
        registration = messages.NewRegistration.from_data(email=email, terms_of_service_agreed=terms_of_service_agreed)
        response = self._post(self._resource_url('newAccount'), registration, 'account registration')
        account = messages.RegistrationResource(
            body=self._load(messages.Registration, response, 'account registration'),
            uri=response.headers.get('Location')
        )
        self.net.account = account
        logger.info("Registered ACME account %s", account.uri)
        return account

    def create_order(self, account: messages.RegistrationResource, domains: list) -> messages.OrderResource:
        """
        Requests a new order covering the given domain names.

        Args:
            account (acme.messages.RegistrationResource): The account returned by `create_account()`.
            domains (list): The domain names to list in the certificate.

        Returns:
            acme.messages.OrderResource: The newly created order.
        """
        self.net.account = account
        identifiers = [messages.Identifier(typ=messages.IDENTIFIER_FQDN, value=domain) for domain in domains]
        response = self._post(self._resource_url('newOrder'), messages.NewOrder(identifiers=identifiers), 'new order')
        order = messages.OrderResource(
            body=self._load(messages.Order, response, 'new order'),
            uri=response.headers.get('Location')
        )
        logger.info("Created order %s for %s", order.uri, ", ".join(domains))
        return order

    def fetch_authorizations(self, order: messages.OrderResource) -> list:
        """Fetches every authorization listed in an order."""
        authorizations = []

        for url in order.body.authorizations:
            response = self._post(url, None, 'authorization fetch')
            authorizations.append(messages.AuthorizationResource(
                body=self._load(messages.Authorization, response, 'authorization fetch'),
                uri=url
            ))

        return authorizations

    def select_dns_challenge(self, authorization: messages.AuthorizationResource) -> DNSChallenge:
        """
        Picks the DNS-01 challenge out of an authorization.

        Raises:
            manual_acme_dns.errors.UnsupportedChallengeError: When the authorization offers no DNS-01 challenge.
        """
        domain = authorization.body.identifier.value

        for challenge_body in authorization.body.challenges:
            if isinstance(challenge_body.chall, challenges.DNS01):
                return DNSChallenge(domain, challenge_body)

        msg = f"ACME server at '{self.directory_url}' does not offer a DNS-01 challenge for '{domain}'."
        raise errors.UnsupportedChallengeError(msg)

    def request_validation(self, challenge: DNSChallenge) -> None:
        """Asks the ACME server to start validating a challenge. This does not wait for the outcome."""
        response = self._post(challenge.uri, challenge.chall.response(self.account_key.jwk), 'challenge answer')
        challenge.body = self._load(messages.ChallengeBody, response, 'challenge answer')
        logger.info("Requested validation of %s", challenge.uri)

    def poll_until_validated(self, challenge: DNSChallenge, max_wait: float = 60, poll_interval: float = 2
                             ) -> DNSChallenge:
        """
        Queries the challenge until the ACME server reaches a verdict or the deadline passes.

        Args:
            challenge (manual_acme_dns.models.DNSChallenge): A challenge passed to `request_validation()`.
            max_wait (float): The total amount of time (in seconds) to wait for a verdict.
            poll_interval (float): The amount of time (in seconds) between status queries.

        Returns:
            manual_acme_dns.models.DNSChallenge: The same challenge, updated to its `valid` state.

        Raises:
            manual_acme_dns.errors.ValidationFailedError: When the server marks the challenge invalid. The server's
                problem detail is carried verbatim in the `detail` attribute.
            manual_acme_dns.errors.ValidationTimeoutError: When no verdict arrives before `max_wait` elapses.
        """
        deadline = self.clock() + max_wait

        while True:
            response = self._post(challenge.uri, None, 'challenge status poll')
            challenge.body = self._load(messages.ChallengeBody, response, 'challenge status poll')
            logger.debug("Challenge %s is %s", challenge.uri, challenge.status)

            if challenge.status == messages.STATUS_VALID:
                return challenge
            if challenge.status == messages.STATUS_INVALID:
                detail = self._problem_detail(challenge.error)
                msg = f"DNS-01 validation for '{challenge.domain}' failed: {detail}"
                raise errors.ValidationFailedError(msg, detail=detail)

            remaining = deadline - self.clock()
            if remaining <= 0:
                msg = (f"No validation result for '{challenge.domain}' after {max_wait} seconds. "
                       "Double-check that the TXT record has propagated and try again.")
                raise errors.ValidationTimeoutError(msg)

            self.sleep(min(poll_interval, remaining))

    def finalize_order(self, order: messages.OrderResource, csr: x509.CertificateSigningRequest,
                       max_wait: float = 90, poll_interval: float = 1) -> IssuedCertificate:
        """
        Submits the CSR once the order is ready, waits for the order to become valid and downloads the certificate.

        Args:
            order (acme.messages.OrderResource): The order whose authorizations have been validated.
            csr (cryptography.x509.CertificateSigningRequest): The CSR to submit.
            max_wait (float): The total amount of time (in seconds) to wait for issuance.
            poll_interval (float): The amount of time (in seconds) between order status queries.

        Returns:
            manual_acme_dns.models.IssuedCertificate: The leaf certificate and its issuer chain.

        Raises:
            manual_acme_dns.errors.FinalizationError: When the order is not ready, the server rejects the CSR, the
                order becomes invalid or issuance does not complete before `max_wait` elapses.
        """
        deadline = self.clock() + max_wait
        body = self._poll_order(order, deadline, poll_interval, (messages.STATUS_PENDING,))

        if body.status != messages.STATUS_READY:
            detail = self._problem_detail(body.error)
            raise errors.FinalizationError(f"Order {order.uri} is '{body.status}', not 'ready': {detail}", detail)

        request = messages.CertificateRequest.from_json(
            {'csr': jose.encode_b64jose(csr.public_bytes(Encoding.DER))}
        )
        try:
            response = self._post(body.finalize, request, 'order finalization')
        except errors.ProtocolError as error:
            # Nonce exhaustion stays a transport failure
            if error.code == BAD_NONCE:
                raise
            raise errors.FinalizationError(error.message, error.detail) from error
        body = self._load(messages.Order, response, 'order finalization')
        logger.info("Finalized order %s", order.uri)

        if body.status in (messages.STATUS_READY, messages.STATUS_PROCESSING):
            body = self._poll_order(order, deadline, poll_interval, (messages.STATUS_READY, messages.STATUS_PROCESSING))

        if body.status != messages.STATUS_VALID or body.certificate is None:
            detail = self._problem_detail(body.error)
            raise errors.FinalizationError(f"The certificate order {order.uri} failed: {detail}", detail)

        response = self._post(body.certificate, None, 'certificate download')
        try:
            return IssuedCertificate.from_pem(response.text)
        except ValueError as error:
            raise errors.FinalizationError(f"Unable to parse certificate from {body.certificate}: {error}") from error

    def _poll_order(self, order: messages.OrderResource, deadline: float, poll_interval: float,
                    waiting: tuple) -> messages.Order:
        """Queries an order until its status is no longer one of `waiting`."""
        while True:
            response = self._post(order.uri, None, 'order status poll')
            body = self._load(messages.Order, response, 'order status poll')
            logger.debug("Order %s is %s", order.uri, body.status)

            if body.status not in waiting:
                return body

            remaining = deadline - self.clock()
            if remaining <= 0:
                raise errors.FinalizationError(f"Timed out waiting for order {order.uri} to leave '{body.status}'.")

            self.sleep(min(poll_interval, remaining))

    def _resource_url(self, name: str) -> str:
        try:
            return self.directory[name]
        except KeyError as error:
            raise errors.ProtocolError(f"ACME directory '{self.directory_url}' has no '{name}' resource.") from error

    def _post(self, url: str, obj, action: str) -> requests.Response:
        """
        Sends a JWS signed POST (or POST-as-GET when `obj` is None). `ClientNetwork.post` fetches a fresh nonce from
        the `newNonce` resource whenever its pool is empty and retries exactly once after a `badNonce` problem.
        """
        try:
            return self.net.post(url, obj, new_nonce_url=self._resource_url('newNonce'))
        except NETWORK_ERRORS as error:
            raise self._protocol_error(f"ACME request for {action} failed", error) from error

    @staticmethod
    def _load(message_type, response: requests.Response, action: str):
        try:
            return message_type.from_json(response.json())
        except (ValueError, jose.DeserializationError) as error:
            raise errors.ProtocolError(f"Unexpected ACME response to {action}: {error}") from error

    @staticmethod
    def _problem_detail(problem) -> str:
        if problem is None:
            return "No further information was provided by the server."
        return problem.detail or str(problem)

    @classmethod
    def _protocol_error(cls, message: str, error: Exception) -> errors.ProtocolError:
        if isinstance(error, messages.Error):
            detail = cls._problem_detail(error)
            return errors.ProtocolError(f"{message}: {detail}", code=error.code, detail=detail)
        return errors.ProtocolError(f"{message}: {error}")
