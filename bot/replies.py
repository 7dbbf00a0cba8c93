"""
bot/replies.py
==============
Reply helpers shared by the guards, the router and the handlers.

Discord allows exactly one initial response per interaction; anything after
that must be a follow-up.  These helpers pick the right one.
"""
from __future__ import annotations

from typing import Any, Optional

import discord

from utils.logger import get_logger

log = get_logger(__name__)

_REPLIABLE = (
    discord.InteractionType.application_command,
    discord.InteractionType.component,
    discord.InteractionType.modal_submit,
)


def is_repliable(interaction: discord.Interaction) -> bool:
    """True for interaction kinds that can be answered with a message."""
    return interaction.type in _REPLIABLE


async def respond(
    interaction: discord.Interaction,
    content: Optional[str] = None,
    *,
    ephemeral: bool = False,
    **kwargs: Any,
) -> None:
    """Send *content* as the reply, or as a follow-up once the interaction is acknowledged."""
    if interaction.response.is_done():
        await interaction.followup.send(content, ephemeral=ephemeral, **kwargs)
    else:
        await interaction.response.send_message(content, ephemeral=ephemeral, **kwargs)


async def defer(interaction: discord.Interaction, *, ephemeral: bool = False) -> None:
    """Acknowledge within Discord's 3s window; failure here is not fatal."""
    if interaction.response.is_done():
        return
    try:
        await interaction.response.defer(ephemeral=ephemeral, thinking=True)
    except discord.HTTPException as exc:
        log.info("Failed to defer reply: %s", exc)
