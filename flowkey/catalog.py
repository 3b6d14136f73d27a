"""
Key-name catalog.

Maps the literal key names of the flow key DSL to KeyNameToken values. The
catalog is intentionally partial; new names are added as data, either here
or at startup through an extension file (see flowkey.config).
"""

from types import MappingProxyType
from typing import Iterable, Iterator, List, Optional

from .key_ast import KeyNameToken


# =============================================================================
# Built-in key names
# =============================================================================

# IP
IP_SOURCE = KeyNameToken("ipsource", "IPv4 source address")
IP_DESTINATION = KeyNameToken("ipdestination", "IPv4 destination address")

# IP version 6
IP6_OFFSET = KeyNameToken("ip6_offset", "IPv6 header offset from start of packet")
IP6_TOS = KeyNameToken("ip6tos", "type of service bits")
IP6_ECN = KeyNameToken("ip6ecn", "explicit congestion notification bits")
IP6_DSCP = KeyNameToken("ip6dscp", "differentiated services code point")
IP6_DSCP_NAME = KeyNameToken("ip6dscpname", "differentiated services code point name")
IP6_FLOW_LABEL = KeyNameToken("ip6flowlabel", "flow label")
IP6_TTL = KeyNameToken("ip6ttl", "time to live")
IP6_SOURCE = KeyNameToken("ip6source", "IPv6 source address")
IP6_DESTINATION = KeyNameToken("ip6destination", "IPv6 destination address")
IP6_BYTES = KeyNameToken("ip6bytes", "payload bytes")
IP6_EXTENSIONS = KeyNameToken("ip6extensions", "list of next header values for extension headers")
IP6_FRAGMENT_OFFSET = KeyNameToken("ip6fragoffset", "fragment offset")
IP6_FRAGMENT_M_FLAG = KeyNameToken("ip6fragm", "fragment m flag")
IP6_NEXT_HEADER = KeyNameToken("ip6nexthdr", "next header")

BUILTIN_KEY_NAMES = (
    IP_SOURCE,
    IP_DESTINATION,
    IP6_OFFSET,
    IP6_TOS,
    IP6_ECN,
    IP6_DSCP,
    IP6_DSCP_NAME,
    IP6_FLOW_LABEL,
    IP6_TTL,
    IP6_SOURCE,
    IP6_DESTINATION,
    IP6_BYTES,
    IP6_EXTENSIONS,
    IP6_FRAGMENT_OFFSET,
    IP6_FRAGMENT_M_FLAG,
    IP6_NEXT_HEADER,
)


class KeyNameCatalog:
    """Read-only table of recognized key names. Lookup is case-sensitive."""

    def __init__(self, tokens: Iterable[KeyNameToken] = ()):
        table = {}
        for token in tokens:
            if token.name in table:
                raise ValueError(f"Duplicate key name in catalog: {token.name!r}")
            table[token.name] = token
        self._tokens = MappingProxyType(table)

    def lookup(self, name: str) -> Optional[KeyNameToken]:
        return self._tokens.get(name)

    def names(self) -> List[str]:
        return list(self._tokens)

    def extended(self, tokens: Iterable[KeyNameToken]) -> 'KeyNameCatalog':
        """Return a new catalog with `tokens` added."""
        return KeyNameCatalog(list(self._tokens.values()) + list(tokens))

    def __contains__(self, name: object) -> bool:
        return name in self._tokens

    def __iter__(self) -> Iterator[KeyNameToken]:
        return iter(self._tokens.values())

    def __len__(self) -> int:
        return len(self._tokens)

    def __repr__(self):
        return f"KeyNameCatalog({len(self)} names)"


DEFAULT_CATALOG = KeyNameCatalog(BUILTIN_KEY_NAMES)
