"""
bot/mention_upload.py
=====================
Adds PDFs to the library when someone @mentions the bot with files attached.

This path sits outside the interaction router, so it applies the same
allowed-context policy itself.  Denials here are silent: the message is
logged and left alone rather than answered.
"""
from __future__ import annotations

from typing import List, Optional

import discord

from bot.handlers import MAX_UPLOAD_BYTES, describe_upload
from bot.permissions import AccessPolicy
from librarian.client import LibrarianClient, LibrarianError
from utils.logger import fields, get_logger

log = get_logger(__name__)

PROCESSING_REACTION = "📚"


def _pdf_attachments(message: discord.Message) -> List[discord.Attachment]:
    return [a for a in message.attachments if a.filename.lower().endswith(".pdf")]


def _mentions(message: discord.Message, user: Optional[discord.abc.Snowflake]) -> bool:
    return user is not None and any(m.id == user.id for m in message.mentions)


class MentionUploader:
    """Handles ``@bot`` messages that carry PDF attachments."""

    def __init__(self, policy: AccessPolicy, librarian: LibrarianClient) -> None:
        self.policy = policy
        self.librarian = librarian

    async def handle(self, message: discord.Message, bot_user: Optional[discord.abc.Snowflake]) -> None:
        if message.author.bot or not _mentions(message, bot_user):
            return

        pdfs = _pdf_attachments(message)
        if not pdfs or message.guild is None:
            return

        guild_id = message.guild.id
        channel_id = message.channel.id
        if not self.policy.guild_allowed(guild_id):
            log.info("Upload mention from non-allowed guild %s", fields(guild_id=guild_id))
            return
        if not self.policy.channel_allowed(guild_id, channel_id):
            log.info(
                "Upload mention from non-allowed channel %s",
                fields(guild_id=guild_id, channel_id=channel_id),
            )
            return

        for attachment in pdfs:
            await self._upload(message, attachment)

    async def _upload(self, message: discord.Message, attachment: discord.Attachment) -> None:
        name = attachment.filename
        if attachment.size > MAX_UPLOAD_BYTES:
            await message.reply(
                f"**{name}** is too large. Maximum size is 25MB. "
                f"Your file is {attachment.size / (1024 * 1024):.1f}MB."
            )
            return

        try:
            await message.add_reaction(PROCESSING_REACTION)
        except discord.HTTPException as exc:
            log.debug("Could not react to message %s: %s", message.id, exc)

        try:
            log.info("Downloading attachment from Discord %s", fields(filename=name, size=attachment.size))
            data = await attachment.read()
            result = await self.librarian.upload_pdf(name, data)
        except (LibrarianError, discord.HTTPException) as exc:
            log.error("Mention upload request failed for %s: %s", name, exc)
            await message.reply(f"❌ Upload failed for **{name}**: {exc}")
            return

        await message.reply(describe_upload(result))
        log.info(
            "MENTION UPLOAD completed %s",
            fields(
                guild_id=message.guild.id if message.guild else None,
                channel_id=message.channel.id,
                user_id=message.author.id,
                filename=name,
                success=result.get("success"),
                status=result.get("status"),
            ),
        )
