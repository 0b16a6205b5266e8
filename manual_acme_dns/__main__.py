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
"""Command line entry point: obtains or renews a certificate using manual DNS validation."""
import argparse
import functools
import logging
import pathlib
import sys

from . import ConsoleOperator, IssuanceSession, DEFAULT_POLL_INTERVAL, DEFAULT_VALIDATION_TIMEOUT
from . import errors
from . import keys
from . import tools
from .config import Config
from .transport import LETSENCRYPT_DIRECTORY, LETSENCRYPT_STAGING_DIRECTORY


def parse_args(argv: list = None) -> argparse.Namespace:
    """Parses the command line arguments."""
    parser = argparse.ArgumentParser(
        prog='manual-acme-dns',
        description="Obtains or renews an SSL certificate via Let's Encrypt using manual DNS validation."
    )
    parser.add_argument(
        'config_path',
        help="Path to the config file describing the certificate. Output files are created in the same directory and "
             "with the same file name as the config file (varying extensions). If this config file does not exist, a "
             "template file is created and the program exits with an error."
    )
    directory = parser.add_mutually_exclusive_group()
    directory.add_argument('--directory', help="ACME directory URL (default: Let's Encrypt production)")
    directory.add_argument('--staging', dest='directory', action='store_const', const=LETSENCRYPT_STAGING_DIRECTORY,
                           help="use the Let's Encrypt staging directory")
    parser.add_argument('--key-type', choices=keys.KEY_TYPES, default='ec256',
                        help="certificate private key type (default: %(default)s)")
    parser.add_argument('--validation-timeout', type=float, default=DEFAULT_VALIDATION_TIMEOUT,
                        help="seconds to wait for the CA to validate the TXT record (default: %(default)s)")
    parser.add_argument('--poll-interval', type=float, default=DEFAULT_POLL_INTERVAL,
                        help="seconds between validation status checks (default: %(default)s)")
    parser.add_argument('--check-dns', action='store_true',
                        help="check that the TXT record resolves before requesting validation")
    parser.add_argument('--nameserver', action='append', dest='nameservers',
                        help="nameserver to use for --check-dns, may be repeated")
    parser.add_argument('--authoritative', action='store_true',
                        help="use the zone's primary nameserver for --check-dns")
    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument('-v', '--verbose', dest='log_level', action='store_const', const=logging.DEBUG,
                           help="show protocol details")
    verbosity.add_argument('-q', '--quiet', dest='log_level', action='store_const', const=logging.ERROR,
                           help="suppress output except for errors")
    parser.set_defaults(directory=LETSENCRYPT_DIRECTORY, log_level=logging.INFO)

    return parser.parse_args(argv)


def main(argv: list = None, operator=None) -> int:
    """
    Runs the command line tool.

    Returns:
        int: The process exit code, 0 on success and 1 on any failure.
    """
    args = parse_args(argv)
    logging.basicConfig(level=args.log_level, format="%(levelname)s: %(message)s")
    config_path = pathlib.Path(args.config_path).absolute()
    operator = operator if operator else ConsoleOperator()

    if not config_path.exists():
        try:
            Config.write_template(config_path)
        except errors.InvalidPath as error:
            print(f"Error: {error.message}", file=sys.stderr)
            return 1
        print(f"Config file not found: {config_path}\n\nA template file has been created at the above path.",
              file=sys.stderr)
        return 1

    propagation_check = None
    if args.check_dns:
        propagation_check = functools.partial(
            tools.wait_for_txt_record, nameservers=args.nameservers, authoritative=args.authoritative
        )

    try:
        config = Config.load_from_file(config_path)
        if not operator.confirm(f"This will create/renew a certificate for {config.domain}"):
            raise errors.OperatorAbort("Aborted by operator.")

        session = IssuanceSession(
            config,
            operator,
            directory=args.directory,
            certificate_key_type=args.key_type,
            validation_timeout=args.validation_timeout,
            poll_interval=args.poll_interval,
            propagation_check=propagation_check,
            friendly_name=config_path.stem
        )
        artifacts = session.run()
        artifacts.save(config_path.parent, config_path.stem)
    except errors.ManualACMEError as error:
        print(f"Error: {error.message}", file=sys.stderr)
        return 1

    print(f"Certificate files saved to: {config_path.parent.joinpath(config_path.stem)}.*")
    return 0


if __name__ == '__main__':
    sys.exit(main())
