"""
bot/guards.py
=============
Sends the public denial notices for interactions the gate rejects.

The decision itself lives in bot/permissions.py; this module only turns a
denial into a reply and a log line.
"""
from __future__ import annotations

import discord

from bot.messages import CHANNEL_BLOCKED, DM_BLOCKED, server_blocked
from bot.permissions import (
    REASON_CHANNEL,
    REASON_DM,
    REASON_GUILD,
    AccessPolicy,
    contact_mention,
    evaluate_context,
)
from bot.replies import is_repliable, respond
from utils.logger import fields, get_logger

log = get_logger(__name__)


async def _reply_public(interaction: discord.Interaction, content: str) -> None:
    try:
        await respond(interaction, content, ephemeral=False)
    except discord.HTTPException as exc:
        log.warning("Failed to send allowed-context denial notice: %s", exc)


def _user_id(interaction: discord.Interaction):
    user = interaction.user
    return user.id if user is not None else None


async def disallow_dm(interaction: discord.Interaction) -> None:
    """Tell the user the bot does not work in DMs."""
    if not is_repliable(interaction):
        return
    log.info("gate %s", fields(action="deny", reason=REASON_DM, user_id=_user_id(interaction)))
    await _reply_public(interaction, DM_BLOCKED)


async def enforce_allowed_context(interaction: discord.Interaction, policy: AccessPolicy) -> bool:
    """Return True if the interaction may proceed; otherwise reply with a denial.

    Interactions that cannot be replied to (autocomplete, pings) are
    rejected silently.
    """
    if not is_repliable(interaction):
        return False

    guild_id = interaction.guild_id
    channel_id = interaction.channel_id
    decision = evaluate_context(guild_id, channel_id, policy)

    if decision.reason == REASON_DM:
        await disallow_dm(interaction)
        return False

    details = dict(guild_id=guild_id, channel_id=channel_id, user_id=_user_id(interaction))

    if decision.reason == REASON_GUILD:
        mention = contact_mention(policy)
        log.info("gate %s", fields(action="deny", reason=decision.reason, contact=mention, **details))
        await _reply_public(interaction, server_blocked(mention))
        return False

    if decision.reason == REASON_CHANNEL:
        log.info("gate %s", fields(action="deny", reason=decision.reason, **details))
        await _reply_public(interaction, CHANNEL_BLOCKED)
        return False

    log.info("gate %s", fields(action="allow", reason=decision.reason, **details))
    return True
