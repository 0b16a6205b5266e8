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
"""Encodes an issued certificate and its private key into the files handed to the operator."""
import logging
import os
import pathlib

from cryptography.hazmat.primitives.serialization import BestAvailableEncryption, Encoding, pkcs12

from .. import errors
from .. import keys
from ..models import IssuedCertificate


# Constants and Variables
CA_BUNDLE_SUFFIX = '.ca-bundle'
CERTIFICATE_SUFFIX = '.crt'
PRIVATE_KEY_SUFFIX = '.private.key'
PFX_SUFFIX = '.pfx'

logger = logging.getLogger(__name__)


class Artifacts:
    """The encoded output of a successful issuance."""

    def __init__(self, ca_bundle: str, leaf_cert: str, private_key: str, pfx: bytes = None) -> None:
        """
        Args:
            ca_bundle (str): The issuer chain as PEM certificates separated by line breaks.
            leaf_cert (str): The issued certificate as PEM.
            private_key (str): The certificate private key as PKCS#8 PEM.
            pfx (bytes): The password protected PKCS#12 bundle, if one was requested.
        """
        self.ca_bundle = ca_bundle
        self.leaf_cert = leaf_cert
        self.private_key = private_key
        self.pfx = pfx

    def files(self, name: str) -> dict:
        """
        Maps conventional file names to their content.

        Args:
            name (str): The base name shared by every file.

        Returns:
            dict: A dictionary where the key is the file name, and the value is the `str` or `bytes` content. The
                `.pfx` entry is only present when a PFX bundle was produced.

        Examples:
            >>> artifacts.files("example")
            {'example.ca-bundle': '-----BEGIN CERTIFICATE-----...', 'example.crt': '...', 'example.private.key': '...'}
        """
        files = {
            name + CA_BUNDLE_SUFFIX: self.ca_bundle,
            name + CERTIFICATE_SUFFIX: self.leaf_cert,
            name + PRIVATE_KEY_SUFFIX: self.private_key,
        }
        if self.pfx is not None:
            files[name + PFX_SUFFIX] = self.pfx

        return files

    def save(self, path: str, name: str) -> list:
        """
        Writes every artifact to `path`. All files are first written to temporary names and only renamed into place
        once every write succeeded. When a write or rename fails, the temporary files and any artifacts already
        renamed into place are removed, so a failure leaves no partial artifact set behind.

        Args:
            path (str): The directory to write the files to.
            name (str): The base name shared by every file.

        Returns:
            list: The paths of the written files.

        Raises:
            manual_acme_dns.errors.InvalidPath: When the requested directory does not exist or cannot be written.
        """
        dir_path = pathlib.Path(path).absolute()

        if not dir_path.is_dir():
            raise errors.InvalidPath(f"Directory at '{path}' does not exist.")

        staged = []
        try:
            for file_name, content in self.files(name).items():
                target = dir_path.joinpath(file_name)
                temporary = target.with_name(target.name + '.tmp')
                staged.append((temporary, target))
                if isinstance(content, bytes):
                    temporary.write_bytes(content)
                else:
                    temporary.write_text(content, encoding='utf-8')
        except OSError as error:
            for temporary, _ in staged:
                temporary.unlink(missing_ok=True)
            raise errors.InvalidPath(f"Unable to write artifacts to '{dir_path}': {error}") from error

        renamed = []
        try:
            for temporary, target in staged:
                os.replace(temporary, target)
                renamed.append(target)
                logger.debug("Wrote %s", target)
        except OSError as error:
            for temporary, _ in staged:
                temporary.unlink(missing_ok=True)
            for target in renamed:
                target.unlink(missing_ok=True)
            raise errors.InvalidPath(f"Unable to write artifacts to '{dir_path}': {error}") from error

        return [str(target) for _, target in staged]


def encode(
        issued: IssuedCertificate,
        certificate_key,
        pfx_password: str = None,
        friendly_name: str = None
) -> Artifacts:
    """
    Encodes the issued certificate, its chain and private key.

    Args:
        issued (manual_acme_dns.models.IssuedCertificate): The certificate returned by the ACME server.
        certificate_key: The private key the certificate was requested for.
        pfx_password (str): When set, a PKCS#12 bundle protected with this password is also produced.
        friendly_name (str): The friendly name stored in the PKCS#12 bundle. Defaults to the certificate's common name.

    Returns:
        manual_acme_dns.encoder.Artifacts: The encoded artifacts.

    Raises:
        manual_acme_dns.errors.EncodingError: When the certificate was not issued for `certificate_key`.
    """
    if not keys.is_key_pair(certificate_key, issued.certificate.public_key()):
        msg = f"Certificate for '{issued.common_name}' does not match the certificate private key."
        raise errors.EncodingError(msg)

    pfx = None
    if pfx_password is not None:
        name = friendly_name or issued.common_name
        try:
            pfx = pkcs12.serialize_key_and_certificates(
                name.encode(),
                certificate_key,
                issued.certificate,
                issued.chain or None,
                BestAvailableEncryption(pfx_password.encode())
            )
        except (TypeError, ValueError) as error:
            raise errors.EncodingError(f"Unable to build PFX bundle for '{name}': {error}") from error

    return Artifacts(
        ca_bundle="\n".join(cert.public_bytes(Encoding.PEM).decode() for cert in issued.chain),
        leaf_cert=issued.certificate.public_bytes(Encoding.PEM).decode(),
        private_key=keys.private_key_to_pem(certificate_key).decode(),
        pfx=pfx
    )
