"""
bot/registration.py
===================
Describes the /librarian slash command and registers it with Discord.

If DISCORD_ALLOWED_GUILD_IDS is set, the command is registered per guild
(propagates immediately).  Otherwise it is registered globally so any
server that invites the bot can use it (can take up to an hour).

The command tree built here only publishes the schema; invocations reach
the bot as raw interactions and are routed by bot/router.py.
"""
from __future__ import annotations

from typing import Optional

import discord
from discord import app_commands

from config.settings import Settings
from utils.logger import get_logger

log = get_logger(__name__)


def build_librarian_group() -> app_commands.Group:
    """The /librarian command and its subcommands."""
    group = app_commands.Group(name="librarian", description="Librarian actions")

    @group.command(name="chat", description="Ask a question (optional ephemeral response)")
    @app_commands.describe(
        prompt="Your prompt or question",
        ephemeral="Reply ephemerally (default false)",
    )
    async def chat(interaction: discord.Interaction, prompt: str, ephemeral: Optional[bool] = None) -> None:
        """Routed by InteractionRouter."""

    @group.command(name="search", description="Search your library (top 5 results)")
    @app_commands.describe(query="Search query")
    async def search(interaction: discord.Interaction, query: str) -> None:
        """Routed by InteractionRouter."""

    @group.command(name="request", description="Upload a file by filename")
    @app_commands.describe(filename="Exact filename to upload")
    async def request(interaction: discord.Interaction, filename: str) -> None:
        """Routed by InteractionRouter."""

    @group.command(name="upload", description="Upload a PDF book to the library")
    @app_commands.describe(file="PDF file (max 25MB)")
    async def upload(interaction: discord.Interaction, file: discord.Attachment) -> None:
        """Routed by InteractionRouter."""

    return group


def build_command_tree(client: discord.Client) -> app_commands.CommandTree:
    tree = app_commands.CommandTree(client)
    tree.add_command(build_librarian_group())
    return tree


async def register_commands(settings: Settings) -> None:
    """Log in over HTTP only and publish the /librarian schema.

    A failure on the first configured guild aborts; later guild failures
    are logged and skipped.
    """
    client = discord.Client(intents=discord.Intents.none(), application_id=int(settings.app_id))
    tree = build_command_tree(client)

    await client.login(settings.discord_token)
    try:
        if not settings.registration_guild_ids:
            log.info("No DISCORD_ALLOWED_GUILD_IDS set; registering GLOBAL application commands.")
            synced = await tree.sync()
            log.info("Registered %d GLOBAL command(s) (propagation can take up to 1 hour).", len(synced))
            return

        for index, guild_id in enumerate(settings.registration_guild_ids):
            guild = discord.Object(id=int(guild_id))
            tree.copy_global_to(guild=guild)
            try:
                synced = await tree.sync(guild=guild)
            except discord.HTTPException as exc:
                log.error("Failed to register commands for guild %s: %s", guild_id, exc)
                if index == 0:
                    raise
                continue
            log.info("Registered %d command(s) for guild %s.", len(synced), guild_id)
    finally:
        await client.close()
