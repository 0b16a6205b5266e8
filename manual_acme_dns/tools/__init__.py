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
"""DNS tools to check that a manually published challenge record is visible before validation is requested."""
import logging
import time

import dns.exception
import dns.resolver


logger = logging.getLogger(__name__)


class TXTLookup:
    """Resolves the TXT values of one record name."""

    def __init__(self, name: str, nameservers: list = None, authoritative: bool = False) -> None:
        """
        Args:
            name (str): The fully qualified record name (e.g. `_acme-challenge.example.com`).
            nameservers (list): Nameserver IPs to query. The system resolvers are used when empty.
            authoritative (bool): Query the primary nameserver from the zone's SOA record instead.
        """
        self.name = name
        self.nameservers = nameservers if nameservers else dns.resolver.Resolver().nameservers
        self.nameservers = self._authoritative_nameservers() if authoritative else self.nameservers
        self.values = []

    def resolve(self) -> list:
        """
        Queries the nameservers for the record's TXT values.

        Returns:
            list: The TXT values found, with the character-strings of each record joined. Empty when the name does
                not exist or has no TXT record.
        """
        try:
            answer = self._resolver().resolve(self.name, 'TXT')
            self.values = [b"".join(rdata.strings).decode() for rdata in answer]
        except dns.exception.DNSException as error:
            logger.debug("TXT lookup for %s failed: %s", self.name, error)
            self.values = []

        return self.values

    def _resolver(self, nameservers: list = None) -> dns.resolver.Resolver:
        resolver = dns.resolver.Resolver()
        resolver.nameservers = nameservers if nameservers else self.nameservers
        return resolver

    def _authoritative_nameservers(self) -> list:
        """
        Walks up the record name until a SOA record is found and returns the addresses of its primary nameserver.
        Falls back to the configured nameservers when no SOA can be found or the nameservers cannot be queried.
        """
        labels = self.name.split(".")

        while labels:
            zone = ".".join(labels)
            try:
                soa = self._resolver().resolve(zone, 'SOA')
                primary = soa[0].mname.to_text()
                return [rdata.to_text() for rdata in self._resolver().resolve(primary, 'A')]
            except (dns.resolver.NoAnswer, dns.resolver.NXDOMAIN):
                labels.pop(0)
            except dns.exception.DNSException as error:
                logger.warning("Unable to find the primary nameserver for %s: %s", self.name, error)
                break

        return self.nameservers


def wait_for_txt_record(
        name: str,
        value: str,
        nameservers: list = None,
        timeout: float = 120,
        interval: float = 5,
        authoritative: bool = False,
        sleep=time.sleep,
        clock=time.monotonic
) -> bool:
    """
    Checks a TXT record until it holds `value` or the timeout is reached.

    Args:
        name (str): The record name to check.
        value (str): The TXT value that must be present.
        nameservers (list): Nameserver IPs to query.
        timeout (float): The amount of time (in seconds) to keep checking.
        interval (float): The amount of time (in seconds) between DNS queries.
        authoritative (bool): Query the zone's primary nameserver instead of `nameservers`.
        sleep (callable): Called with the number of seconds to pause between queries.
        clock (callable): Returns the current time in seconds.

    Returns:
        bool: Whether the value was found before the timeout.

    Examples:
        >>> wait_for_txt_record("_acme-challenge.example.com", "LPsIwTo7o8BoG0...", nameservers=["8.8.8.8"])
        True
    """
    lookup = TXTLookup(name, nameservers=nameservers, authoritative=authoritative)
    deadline = clock() + timeout

    while True:
        values = lookup.resolve()
        if value in values:
            logger.info("Found TXT value for %s via %s", name, ", ".join(lookup.nameservers))
            return True
        logger.debug("TXT value for %s not found in %s", name, values)

        remaining = deadline - clock()
        if remaining <= 0:
            return False

        # Avoid flooding the DNS server(s) by briefly pausing between DNS checks
        sleep(min(interval, remaining))
