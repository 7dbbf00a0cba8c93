"""
bot/client.py
=============
Assembles the Discord client.

Responsibilities:
- Create the discord.py Client with the intents the bot needs.
- Forward every interaction to the InteractionRouter.
- Hand @mentions with PDF attachments to the MentionUploader.
- Log connection events and set the bot's status.

Slash commands are registered separately (see register_commands.py), so the
client carries no command tree: the router is the single entry point for
interactions.
"""
from __future__ import annotations

from typing import Optional

import discord

from bot.mention_upload import MentionUploader
from bot.router import InteractionRouter
from utils.logger import get_logger

log = get_logger(__name__)


def create_bot(router: InteractionRouter, mention_uploader: Optional[MentionUploader] = None) -> discord.Client:
    """Create and configure the Discord client.

    Returns a fully-wired :class:`discord.Client` ready to be started with
    ``client.start(token)``.
    """
    # Attachments on @mention uploads need the message-content intent.
    # (It must also be enabled in the Discord Developer Portal for your app.)
    intents = discord.Intents.default()
    intents.message_content = True

    bot = discord.Client(intents=intents)

    # ── Events ────────────────────────────────────────────────────────────────

    @bot.event
    async def on_ready() -> None:
        log.info("Logged in as %s (ID: %d)", bot.user, bot.user.id)  # type: ignore[union-attr]

        await bot.change_presence(
            activity=discord.Activity(
                type=discord.ActivityType.listening,
                name="/librarian",
            )
        )

    @bot.event
    async def on_interaction(interaction: discord.Interaction) -> None:
        await router.dispatch(interaction)

    @bot.event
    async def on_message(message: discord.Message) -> None:
        if mention_uploader is None:
            return
        try:
            await mention_uploader.handle(message, bot.user)
        except Exception:
            log.exception("Unhandled error while handling message %s", message.id)

    return bot
