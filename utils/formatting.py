"""
utils/formatting.py
===================
Helpers for Discord message formatting.

Discord rejects messages over 2000 characters, so long backend answers are
sent as several messages.
"""
from typing import Iterator, List

DISCORD_MAX_LENGTH = 2000


def _pieces(text: str, max_length: int) -> Iterator[str]:
    """Yield the lines of *text*, cutting any line longer than *max_length*."""
    for line in text.splitlines(keepends=True):
        for start in range(0, len(line), max_length):
            yield line[start:start + max_length]


def split_message(text: str, max_length: int = DISCORD_MAX_LENGTH) -> List[str]:
    """Pack *text* into as few chunks of at most *max_length* as line breaks allow.

    Joining the chunks gives back *text* unchanged.  Empty text gives no chunks.
    """
    chunks: List[str] = []
    for piece in _pieces(text, max_length):
        if chunks and len(chunks[-1]) + len(piece) <= max_length:
            chunks[-1] += piece
        else:
            chunks.append(piece)
    return chunks
