"""
bot/custom_id.py
================
Encodes and decodes the custom IDs carried by Librarian result buttons.

Format::

    LIB:<ACTION>:<key>=<value>[;r=<row>;b=<button>]

ACTION is UPLOAD or ASK, key is ``filename`` or ``bookId``.  The optional
``;r=..;b=..`` suffix only keeps sibling buttons on one message unique
(Discord rejects duplicate custom IDs); it is stripped and never read.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

PREFIX = "LIB"
KEY_FILENAME = "filename"
KEY_BOOK_ID = "bookId"

# Discord caps custom IDs at 100 characters
_MAX_FILENAME = 64
_WHITESPACE = re.compile(r"\s")


class ButtonAction(Enum):
    UPLOAD = "UPLOAD"
    ASK = "ASK"


@dataclass(frozen=True)
class ByFilename:
    filename: str


@dataclass(frozen=True)
class ById:
    book_id: str


CustomIdTarget = Union[ByFilename, ById]


@dataclass(frozen=True)
class ParsedCustomId:
    action: ButtonAction
    target: CustomIdTarget

    @property
    def display_name(self) -> str:
        """The filename or book ID, for user-facing messages."""
        if isinstance(self.target, ByFilename):
            return self.target.filename
        return self.target.book_id


def encode_custom_id(
    action: ButtonAction,
    value: str,
    row: Optional[int] = None,
    button: Optional[int] = None,
    key: str = KEY_FILENAME,
) -> str:
    """Build a button custom ID.

    Filenames lose their whitespace and are cut to 64 characters; book IDs
    are kept as-is.  The uniqueness suffix is added only when both *row*
    and *button* are given.
    """
    if key not in (KEY_FILENAME, KEY_BOOK_ID):
        raise ValueError(f"unsupported custom ID key: {key!r}")

    value = str(value)
    if key == KEY_FILENAME:
        value = _WHITESPACE.sub("", value)[:_MAX_FILENAME]

    base = f"{PREFIX}:{action.value}:{key}={value}"
    if row is None or button is None:
        return base
    return f"{base};r={row};b={button}"


def parse_custom_id(custom_id: object) -> Optional[ParsedCustomId]:
    """Parse a button custom ID; return None for anything malformed or foreign."""
    if not isinstance(custom_id, str):
        return None

    parts = custom_id.split(":")
    if len(parts) != 3 or parts[0] != PREFIX:
        return None

    try:
        action = ButtonAction(parts[1])
    except ValueError:
        return None

    # Only the first item matters; ;r=..;b=.. is uniqueness padding
    first = parts[2].split(";", 1)[0]
    pair = first.split("=")
    if len(pair) != 2:
        return None
    key, value = pair
    if not key or not value:
        return None

    if key == KEY_FILENAME:
        return ParsedCustomId(action, ByFilename(value))
    if key == KEY_BOOK_ID:
        return ParsedCustomId(action, ById(value))
    return None
