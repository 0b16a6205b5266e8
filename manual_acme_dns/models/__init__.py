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
"""Run-scoped objects passed between the ACME transport, the orchestrator and the encoder."""
from acme import messages
from cryptography import x509
from cryptography.hazmat.primitives.serialization import Encoding
from cryptography.x509.oid import NameOID


class DNSChallenge:
    """A DNS-01 challenge together with the domain name of the authorization it was offered for."""

    def __init__(self, domain: str, body: messages.ChallengeBody) -> None:
        self.domain = domain
        self.body = body

    @property
    def chall(self):
        """The `acme.challenges.DNS01` object of this challenge."""
        return self.body.chall

    @property
    def uri(self) -> str:
        return self.body.uri

    @property
    def token(self) -> str:
        """The base64url encoded challenge token."""
        return self.body.chall.encode('token')

    @property
    def status(self) -> messages.Status:
        return self.body.status

    @property
    def error(self):
        return self.body.error

    def __repr__(self) -> str:
        return f"DNSChallenge(domain={self.domain!r}, status={self.status}, uri={self.uri!r})"


class IssuedCertificate:
    """The leaf certificate and issuer chain returned by the ACME server after finalization."""

    def __init__(self, certificate: x509.Certificate, chain: list) -> None:
        self.certificate = certificate
        self.chain = chain

    @classmethod
    def from_pem(cls, fullchain_pem) -> 'IssuedCertificate':
        """
        Parses a PEM chain as downloaded from the order's certificate URL. The first certificate is the leaf, the rest
        are its issuers.

        Raises:
            ValueError: When the data contains no PEM certificate.
        """
        if isinstance(fullchain_pem, str):
            fullchain_pem = fullchain_pem.encode()
        certificates = x509.load_pem_x509_certificates(fullchain_pem)
        return cls(certificates[0], certificates[1:])

    @property
    def common_name(self) -> str:
        """The subject common name of the leaf certificate."""
        return self.certificate.subject.get_attributes_for_oid(NameOID.COMMON_NAME)[0].value

    @property
    def fullchain_pem(self) -> bytes:
        return b"".join(cert.public_bytes(Encoding.PEM) for cert in [self.certificate] + self.chain)
