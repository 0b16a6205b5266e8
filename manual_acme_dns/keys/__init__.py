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
"""Key pair and CSR generation for ACME accounts and certificates."""
import OpenSSL
import josepy as jose
from cryptography import x509
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.serialization import Encoding, PrivateFormat, PublicFormat, NoEncryption
from cryptography.x509.oid import NameOID

from .. import errors


# Constants and Variables
KEY_TYPES = ['ec256', 'ec384', 'rsa2048', 'rsa4096']
JWS_ALGORITHMS = {
    'ec256': jose.ES256,
    'ec384': jose.ES384,
    'rsa2048': jose.RS256,
    'rsa4096': jose.RS256,
}


class AccountKey:
    """
    The key pair used to sign every ACME request of a single run and to derive DNS-01 key authorizations. A new
    account key is generated on every run and is never written to disk.
    """

    def __init__(self, private_key, key_type: str = 'ec256') -> None:
        """
        Args:
            private_key: The `cryptography` private key object to wrap.
            key_type (str): The key type the private key was generated as. Options are: [`ec256`, `ec384`, `rsa2048`,
                `rsa4096`]
        """
        if key_type not in JWS_ALGORITHMS:
            raise errors.CryptoError(f"Invalid account key type '{key_type}'. Options {KEY_TYPES}")

        self.key_type = key_type
        self.alg = JWS_ALGORITHMS[key_type]
        self.jwk = jose.JWKRSA(key=private_key) if key_type.startswith('rsa') else jose.JWKEC(key=private_key)

    def thumbprint(self) -> bytes:
        """Returns the RFC 7638 SHA-256 thumbprint of the public JWK."""
        return self.jwk.thumbprint()


def generate_private_key(key_type: str = 'ec256'):
    """
    Generates a new RSA or EC private key. Every call yields a new random key.

    Args:
        key_type (str): The requested key type. Options are: [`ec256`, `ec384`, `rsa2048`, `rsa4096`]

    Returns:
        The `cryptography` private key object.

    Raises:
        manual_acme_dns.errors.CryptoError: When the key type is unsupported or the key could not be generated.

    Examples:
        >>> generate_private_key(key_type="ec384")
        <cryptography.hazmat.bindings._rust.openssl.ec.ECPrivateKey object at 0x7f...>
    """
    try:
        # Generate a EC256 private key
        if key_type == 'ec256':
            return ec.generate_private_key(ec.SECP256R1())
        # Generate a EC384 private key
        if key_type == 'ec384':
            return ec.generate_private_key(ec.SECP384R1())
        # Generate a RSA private key
        if key_type in ('rsa2048', 'rsa4096'):
            key = OpenSSL.crypto.PKey()
            key.generate_key(OpenSSL.crypto.TYPE_RSA, int(key_type[3:]))
            return key.to_cryptography_key()
    except (UnsupportedAlgorithm, OpenSSL.crypto.Error, ValueError) as error:
        raise errors.CryptoError(f"Unable to generate '{key_type}' private key: {error}") from error

    # Otherwise, the requested key type is not supported. Throw an error
    raise errors.CryptoError(f"Invalid private key type '{key_type}'. Options {KEY_TYPES}")


def generate_account_key(key_type: str = 'ec256') -> AccountKey:
    """Generates a fresh ACME account key of the given type."""
    return AccountKey(generate_private_key(key_type), key_type=key_type)


def generate_csr(
        private_key,
        common_name: str,
        country_name: str,
        state: str,
        locality: str,
        organization: str,
        organizational_unit: str = 'IT'
) -> x509.CertificateSigningRequest:
    """
    Builds and signs a CSR for a single domain name.

    Args:
        private_key: The certificate private key the CSR is signed with.
        common_name (str): The domain name to request (may be a wildcard name).
        country_name (str): The two-letter country code subject field.
        state (str): The state or province subject field.
        locality (str): The locality subject field.
        organization (str): The organization subject field.
        organizational_unit (str): The organizational unit subject field.

    Returns:
        cryptography.x509.CertificateSigningRequest: The signed CSR. The common name is also listed as a DNS
            subject alternative name.

    Raises:
        manual_acme_dns.errors.CryptoError: When a subject value is rejected or signing fails.
    """
    try:
        subject = x509.Name([
            x509.NameAttribute(NameOID.COUNTRY_NAME, country_name),
            x509.NameAttribute(NameOID.STATE_OR_PROVINCE_NAME, state),
            x509.NameAttribute(NameOID.LOCALITY_NAME, locality),
            x509.NameAttribute(NameOID.ORGANIZATION_NAME, organization),
            x509.NameAttribute(NameOID.ORGANIZATIONAL_UNIT_NAME, organizational_unit),
            x509.NameAttribute(NameOID.COMMON_NAME, common_name),
        ])
        builder = x509.CertificateSigningRequestBuilder().subject_name(subject).add_extension(
            x509.SubjectAlternativeName([x509.DNSName(common_name)]), critical=False
        )
        return builder.sign(private_key, hashes.SHA256())
    except (UnsupportedAlgorithm, TypeError, ValueError) as error:
        raise errors.CryptoError(f"Unable to build CSR for '{common_name}': {error}") from error


def private_key_to_pem(private_key) -> bytes:
    """Serializes a private key to unencrypted PKCS#8 PEM bytes."""
    return private_key.private_bytes(
        encoding=Encoding.PEM,
        format=PrivateFormat.PKCS8,
        encryption_algorithm=NoEncryption()
    )


def is_key_pair(private_key, public_key) -> bool:
    """Checks whether a public key belongs to a private key."""
    return public_key.public_bytes(
        Encoding.DER, PublicFormat.SubjectPublicKeyInfo
    ) == private_key.public_key().public_bytes(Encoding.DER, PublicFormat.SubjectPublicKeyInfo)
