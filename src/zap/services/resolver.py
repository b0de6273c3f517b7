"""Resolve user-typed tokens to category and host keys.

Resolution is two passes over insertion order:
1. a key equal to the token (case-sensitive)
2. the first entry whose aliases contain the token

An exact key therefore always beats an alias, even an alias declared on an
earlier category. There is no prefix or fuzzy matching here. A miss returns
None.
"""

from typing import Iterable, Mapping, Optional, Protocol

from zap.core.config import GlobalConfig, HostTable


class _Aliased(Protocol):
    aliases: list[str]


def _resolve(entries: Mapping[str, _Aliased], token: str) -> Optional[str]:
    for key in entries:
        if key == token:
            return key
    for key, entry in entries.items():
        if token in entry.aliases:
            return key
    return None


def resolve_category(config: GlobalConfig, token: str) -> Optional[str]:
    """Canonical category key for ``token``, or None."""
    return _resolve(config.categories, token)


def resolve_host(table: HostTable, token: str) -> Optional[str]:
    """Canonical host key for ``token`` within one table, or None."""
    return _resolve(table.hosts, token)


def alias_owners(config: GlobalConfig, token: str) -> list[str]:
    """Categories that declare ``token`` as one of their aliases."""
    return [key for key, meta in config.categories.items() if token in meta.aliases]


def completion_candidates(
    config: GlobalConfig,
    tables: Mapping[str, Optional[HostTable]],
) -> list[str]:
    """Words offered by shell completion: categories, their aliases, hosts."""
    words: list[str] = []

    def add(values: Iterable[str]) -> None:
        for value in values:
            if value not in words:
                words.append(value)

    for key, meta in config.categories.items():
        add([key])
        add(meta.aliases)
        table = tables.get(key)
        if table is not None:
            add(table.hosts)
    return words
