"""
bot/permissions.py
==================
Decides whether an interaction's guild and channel may use the bot.

Permissions come from two places (see config/):
- allowed-context.json — guild ID → allowed channel IDs; missing file = allowed everywhere
- NONVERIFIED_SERVERS_ALLOWED — whether guilds missing from the file are allowed

Everything here is pure: no Discord calls, no I/O.  The allow-list is loaded
once in main.py and passed in through :class:`AccessPolicy`.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union

from config.allowed_context import AllowedContextMap

# discord.py hands out snowflakes as ints; the allow-list stores strings
SnowflakeLike = Union[str, int, None]

REASON_DM = "dm_disallowed"
REASON_GUILD = "guild_not_allowed"
REASON_CHANNEL = "channel_not_allowed"
REASON_ALLOWED = "context_allowed"


def _normalize(snowflake: SnowflakeLike) -> str:
    if snowflake is None:
        return ""
    return str(snowflake).strip()


def is_guild_allowed(
    guild_id: SnowflakeLike,
    allowed_map: Optional[AllowedContextMap],
    default_policy: bool,
) -> bool:
    """Return True if the bot may be used in this guild.

    - No guild ID → False (DMs are rejected before this check).
    - No allow-list file → True.
    - Guild listed in the file → True, whatever its channel list holds.
    - Guild not listed → *default_policy*.
    """
    guild = _normalize(guild_id)
    if not guild:
        return False
    if allowed_map is None:
        return True
    if guild in allowed_map:
        return True
    return default_policy


def is_channel_allowed(
    guild_id: SnowflakeLike,
    channel_id: SnowflakeLike,
    allowed_map: Optional[AllowedContextMap],
    default_policy: bool,
) -> bool:
    """Return True if the bot may be used in this channel.

    A channel is never allowed when its guild is not.  Within a listed guild
    an empty channel list allows every channel; otherwise the channel must
    be listed.  An unlisted guild that the default policy lets in allows all
    of its channels.
    """
    guild = _normalize(guild_id)
    channel = _normalize(channel_id)
    if not guild or not channel:
        return False
    if allowed_map is None:
        return True
    if not is_guild_allowed(guild, allowed_map, default_policy):
        return False

    channels = allowed_map.channels_for(guild)
    if channels is None:
        return default_policy
    if not channels:
        return True
    return channel in channels


@dataclass(frozen=True)
class AccessPolicy:
    """Everything the gate needs, built once at startup."""

    allowed_map: Optional[AllowedContextMap]
    default_policy: bool = True
    contact_user_id: Optional[str] = None

    def guild_allowed(self, guild_id: SnowflakeLike) -> bool:
        return is_guild_allowed(guild_id, self.allowed_map, self.default_policy)

    def channel_allowed(self, guild_id: SnowflakeLike, channel_id: SnowflakeLike) -> bool:
        return is_channel_allowed(guild_id, channel_id, self.allowed_map, self.default_policy)


@dataclass(frozen=True)
class GateDecision:
    allowed: bool
    reason: str

    def __bool__(self) -> bool:
        return self.allowed


def evaluate_context(
    guild_id: SnowflakeLike,
    channel_id: SnowflakeLike,
    policy: AccessPolicy,
) -> GateDecision:
    """Run the DM → guild → channel checks in order and report the first failure."""
    if not _normalize(guild_id):
        return GateDecision(False, REASON_DM)
    if not policy.guild_allowed(guild_id):
        return GateDecision(False, REASON_GUILD)
    if not policy.channel_allowed(guild_id, channel_id):
        return GateDecision(False, REASON_CHANNEL)
    return GateDecision(True, REASON_ALLOWED)


def contact_mention(policy: AccessPolicy) -> Optional[str]:
    """Return ``<@id>`` for the configured contact user, or None."""
    if not policy.contact_user_id:
        return None
    return f"<@{policy.contact_user_id}>"
