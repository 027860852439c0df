"""DNS lookups used by custom domain verification."""

import logging
from typing import List, Optional

import dns.asyncresolver
import dns.exception

from ..errors import DNSLookupError

logger = logging.getLogger(__name__)


class DNSResolver:
    """Async TXT/CNAME resolver returning plain strings."""

    def __init__(self, nameservers: Optional[List[str]] = None, lifetime: float = 5.0):
        """
        Initialize resolver.

        Args:
            nameservers: Override system nameservers (e.g. ["1.1.1.1"])
            lifetime: Total seconds allowed per query
        """
        self._resolver = dns.asyncresolver.Resolver(configure=not nameservers)
        if nameservers:
            self._resolver.nameservers = nameservers
        self._resolver.lifetime = lifetime

    async def _resolve(self, name: str, rdtype: str):
        try:
            return await self._resolver.resolve(name, rdtype)
        except dns.exception.DNSException as e:
            raise DNSLookupError(f"{rdtype} lookup for {name} failed: {e}") from e

    async def lookup_txt(self, name: str) -> List[str]:
        """
        TXT records of name, one string per record.

        Multi-string records are concatenated.

        Raises:
            DNSLookupError: NXDOMAIN, no answer, timeout
        """
        answer = await self._resolve(name, "TXT")
        return [b"".join(rdata.strings).decode(errors="replace") for rdata in answer]

    async def lookup_cname(self, name: str) -> str:
        """
        Canonical name of name, as returned (trailing dot included).

        Raises:
            DNSLookupError: name has no CNAME or the query failed
        """
        answer = await self._resolve(name, "CNAME")
        return answer[0].target.to_text()
