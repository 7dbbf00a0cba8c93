"""
config/allowed_context.py
=========================
Loads ``allowed-context.json``, the per-guild channel allow-list.

File shape::

    {
      "123456789012345678": ["111111111111111111", "222222222222222222"],
      "222222222222222222": []
    }

- Key: guild ID (string)
- Value: array of channel IDs (strings); an empty array means every channel
  in that guild is allowed.

A missing file means the bot is allowed everywhere.  A file that cannot be
read or does not match the shape above is logged and treated the same as a
missing file, so a typo never keeps the bot from starting.
"""
from __future__ import annotations

import json
from pathlib import Path
from types import MappingProxyType
from typing import Any, FrozenSet, Iterable, Iterator, List, Mapping, Optional, Union

from utils.logger import get_logger

log = get_logger(__name__)

ALLOWED_CONTEXT_FILENAME = "allowed-context.json"


class AllowedContextError(ValueError):
    """Raised when allow-list data does not match the expected shape."""


class AllowedContextMap(Mapping[str, FrozenSet[str]]):
    """Read-only mapping of guild ID → set of allowed channel IDs."""

    def __init__(self, entries: Mapping[str, Iterable[str]]) -> None:
        self._entries = MappingProxyType({guild: frozenset(channels) for guild, channels in entries.items()})

    def __getitem__(self, guild_id: str) -> FrozenSet[str]:
        return self._entries[guild_id]

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"AllowedContextMap({dict(self._entries)!r})"

    def channels_for(self, guild_id: str) -> Optional[FrozenSet[str]]:
        """Return the guild's channel set, or None when the guild is not listed."""
        return self._entries.get(guild_id)


def parse_allowed_context(data: Any) -> AllowedContextMap:
    """Validate decoded JSON and build an :class:`AllowedContextMap`.

    Raises
    ------
    AllowedContextError
        If *data* is not an object whose values are all arrays of strings.
    """
    if not isinstance(data, dict):
        raise AllowedContextError(f"expected a JSON object, got {type(data).__name__}")

    for guild_id, channels in data.items():
        if not isinstance(channels, list):
            raise AllowedContextError(
                f"guild {guild_id!r}: expected an array of channel IDs, got {type(channels).__name__}"
            )
        for channel_id in channels:
            if not isinstance(channel_id, str):
                raise AllowedContextError(
                    f"guild {guild_id!r}: channel IDs must be strings, got {channel_id!r}"
                )

    return AllowedContextMap(data)


def default_candidate_paths(cwd: Optional[Union[str, Path]] = None) -> List[Path]:
    """Where to look for the allow-list: the working directory, then its parent."""
    base = Path(cwd) if cwd is not None else Path.cwd()
    return [
        (base / ALLOWED_CONTEXT_FILENAME).resolve(),
        (base.parent / ALLOWED_CONTEXT_FILENAME).resolve(),
    ]


def load_allowed_context(candidates: Iterable[Union[str, Path]]) -> Optional[AllowedContextMap]:
    """Load the first existing candidate file.

    Returns None (allow everywhere) when no candidate exists or when the
    first existing one is unreadable or malformed.  Never raises.
    """
    for candidate in candidates:
        path = Path(candidate)
        if not path.exists():
            continue

        try:
            raw = path.read_text(encoding="utf-8")
            allowed_map = parse_allowed_context(json.loads(raw))
        except (OSError, ValueError) as exc:
            # json.JSONDecodeError and AllowedContextError are both ValueErrors
            log.warning(
                "Failed to load %s, falling back to allow-everywhere: %s",
                path,
                exc,
            )
            return None

        log.info("Loaded %s from: %s (%d guild(s))", ALLOWED_CONTEXT_FILENAME, path, len(allowed_map))
        return allowed_map

    log.debug("No %s found; the bot is allowed in every guild and channel.", ALLOWED_CONTEXT_FILENAME)
    return None
