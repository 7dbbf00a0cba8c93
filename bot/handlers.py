"""
bot/handlers.py
===============
Leaf handlers for /librarian subcommands and result buttons.

/librarian chat <prompt> [ephemeral]  — Ask the library a question
/librarian search <query>             — Top 5 matching books, with Upload / Ask buttons
/librarian request <filename>         — Upload a book file into the channel
/librarian upload <file>              — Add a PDF to the library

Handlers are only called by the router after the allowed-context gate has
passed.  Each one defers, makes its backend call through LibrarianClient,
and formats the reply.
"""
from __future__ import annotations

import io
from typing import TYPE_CHECKING, Any, Dict, List

import discord

from bot.custom_id import KEY_BOOK_ID, ButtonAction, ById, ParsedCustomId, encode_custom_id
from bot.messages import ASK_HINT
from bot.replies import defer, respond
from librarian.client import Download, LibrarianClient, LibrarianError
from utils.formatting import split_message
from utils.logger import fields, get_logger

if TYPE_CHECKING:
    from bot.router import SubcommandCall

log = get_logger(__name__)

MAX_UPLOAD_BYTES = 25 * 1024 * 1024
MAX_RESULTS = 5
EMBED_COLOR = 0x5865F2  # blurple


def _context(interaction: discord.Interaction, **extra: Any) -> str:
    user = interaction.user
    return fields(
        guild_id=interaction.guild_id,
        channel_id=interaction.channel_id,
        user_id=user.id if user is not None else None,
        **extra,
    )


def build_search_embeds(results: List[Dict[str, Any]]) -> List[discord.Embed]:
    """One embed per result, top 5 only."""
    embeds = []
    for index, result in enumerate(results[:MAX_RESULTS]):
        lines = []
        if result.get("score") is not None:
            lines.append(f"Score: {result['score']:.3f}")
        if result.get("filename"):
            lines.append(f"Filename: {result['filename']}")
        elif result.get("id"):
            lines.append(f"ID: {result['id']}")
        embeds.append(
            discord.Embed(
                title=result.get("filename") or f"Result {index + 1}",
                description="\n".join(lines),
                color=EMBED_COLOR,
            )
        )
    return embeds


def build_result_view(results: List[Dict[str, Any]]) -> discord.ui.View:
    """One row of Upload / Ask buttons per result, keyed by book ID."""
    view = discord.ui.View(timeout=None)
    for row, result in enumerate(results[:MAX_RESULTS]):
        book_id = str(result["id"])
        view.add_item(
            discord.ui.Button(
                label="Upload file",
                style=discord.ButtonStyle.primary,
                custom_id=encode_custom_id(ButtonAction.UPLOAD, book_id, row, 0, key=KEY_BOOK_ID),
                row=row,
            )
        )
        view.add_item(
            discord.ui.Button(
                label="Ask about",
                style=discord.ButtonStyle.secondary,
                custom_id=encode_custom_id(ButtonAction.ASK, book_id, row, 1, key=KEY_BOOK_ID),
                row=row,
            )
        )
    return view


def _as_file(download: Download) -> discord.File:
    return discord.File(io.BytesIO(download.data), filename=download.filename)


class LibrarianHandlers:
    """Backend adapters for every /librarian subcommand and button."""

    def __init__(self, librarian: LibrarianClient) -> None:
        self.librarian = librarian

    # ── /librarian chat ──────────────────────────────────────────────────────

    async def chat(self, interaction: discord.Interaction, call: "SubcommandCall") -> None:
        prompt = call.get("prompt", "")
        ephemeral = bool(call.get("ephemeral", False))
        await defer(interaction, ephemeral=ephemeral)

        try:
            data = await self.librarian.chat(prompt)
        except LibrarianError as exc:
            log.error("Librarian /chat error: %s", exc)
            await respond(interaction, f"Chat failed: {exc}", ephemeral=ephemeral)
            return

        chunks = split_message(data.get("answer") or "(no answer)")
        for chunk in chunks:
            await respond(interaction, chunk, ephemeral=ephemeral)
        log.info("CHAT forwarded %s", _context(interaction, used_top_k=data.get("used_topK")))

    # ── /librarian search ────────────────────────────────────────────────────

    async def search(self, interaction: discord.Interaction, call: "SubcommandCall") -> None:
        query = call.get("query", "")
        await defer(interaction)

        try:
            data = await self.librarian.search(query, top_k=MAX_RESULTS)
        except LibrarianError as exc:
            log.error("Librarian /search error: %s", exc)
            await respond(interaction, f"Search failed: {exc}", ephemeral=True)
            return

        results = []
        for match in (data.get("matches") or [])[:MAX_RESULTS]:
            book = match.get("book") or {}
            distance = match.get("distance")
            results.append(
                {
                    "id": book.get("id"),
                    "filename": book.get("filename"),
                    "score": round(1 - float(distance), 3) if distance is not None else None,
                }
            )
        results = [r for r in results if r["id"] is not None]

        if not results:
            await respond(interaction, f'No results for: "{data.get("query", query)}"')
            return

        await respond(
            interaction,
            f'Top {len(results)} results for: "{data.get("query", query)}"',
            embeds=build_search_embeds(results),
            view=build_result_view(results),
        )
        log.info("SEARCH forwarded %s", _context(interaction, query=query, returned=len(results)))

    # ── /librarian request ───────────────────────────────────────────────────

    async def request(self, interaction: discord.Interaction, call: "SubcommandCall") -> None:
        filename = call.get("filename", "")
        await defer(interaction)

        try:
            download = await self._download_by_filename(filename)
        except LibrarianError as exc:
            log.error("Librarian download failed for %s: %s", filename, exc)
            await respond(interaction, f"Download failed for {filename}: {exc}", ephemeral=True)
            return

        await respond(interaction, f"Uploading {download.filename}", file=_as_file(download))
        log.info("REQUEST upload completed %s", _context(interaction, filename=filename))

    async def _download_by_filename(self, filename: str) -> Download:
        """Download by filename, falling back to a case-insensitive lookup in GET /books."""
        try:
            return await self.librarian.download_by_filename(filename)
        except LibrarianError as exc:
            if exc.status != 404 or exc.message != "book_not_found":
                raise

        wanted = filename.lower()
        for book in await self.librarian.list_books():
            if str(book.get("filename", "")).lower() == wanted:
                return await self.librarian.download_by_id(book["id"], book.get("filename") or filename)
        raise LibrarianError("book_not_found", status=404)

    # ── /librarian upload ────────────────────────────────────────────────────

    async def upload(self, interaction: discord.Interaction, call: "SubcommandCall") -> None:
        attachment = call.attachment("file")
        if attachment is None:
            await respond(interaction, "Please attach a PDF file.", ephemeral=True)
            return

        name = attachment.filename
        size = attachment.size
        if not name.lower().endswith(".pdf"):
            await respond(
                interaction,
                "Only PDF files are allowed. Please upload a file with a .pdf extension.",
                ephemeral=True,
            )
            return
        if size > MAX_UPLOAD_BYTES:
            await respond(
                interaction,
                f"File too large. Maximum size is 25MB. Your file is {size / (1024 * 1024):.1f}MB.",
                ephemeral=True,
            )
            return

        await defer(interaction)

        try:
            data = await attachment.read()
            result = await self.librarian.upload_pdf(name, data)
        except (LibrarianError, discord.HTTPException) as exc:
            log.error("Upload request failed for %s: %s", name, exc)
            await respond(interaction, f"❌ Upload failed: {exc}", ephemeral=True)
            return

        await respond(interaction, describe_upload(result))
        log.info(
            "UPLOAD completed %s",
            _context(interaction, filename=name, success=result.get("success"), status=result.get("status")),
        )

    # ── Buttons ──────────────────────────────────────────────────────────────

    async def button(self, interaction: discord.Interaction, parsed: ParsedCustomId) -> None:
        log.info("BUTTON %s clicked %s", parsed.action.value, _context(interaction, target=parsed.display_name))
        if parsed.action is ButtonAction.UPLOAD:
            await self._upload_button(interaction, parsed)
        elif parsed.action is ButtonAction.ASK:
            await respond(interaction, ASK_HINT, ephemeral=True)

    async def _upload_button(self, interaction: discord.Interaction, parsed: ParsedCustomId) -> None:
        await defer(interaction)
        target = parsed.target
        try:
            if isinstance(target, ById):
                download = await self.librarian.download_by_id(target.book_id)
            else:
                download = await self.librarian.download_by_filename(target.filename)
        except LibrarianError as exc:
            await respond(interaction, f"Download failed for {parsed.display_name}: {exc}", ephemeral=True)
            return

        await respond(interaction, f"Uploading {download.filename}", file=_as_file(download))


def describe_upload(result: Dict[str, Any]) -> str:
    """Turn the backend's upload status into a reply."""
    filename = result.get("filename", "file")
    chunks = result.get("chunks_count", "unknown")
    if result.get("success"):
        if result.get("status") == "already_exists":
            return (
                f"📚 **{filename}** already exists in the library.\n"
                f"Book ID: `{result.get('book_id')}`\nChunks: {chunks}"
            )
        return (
            f"✅ **{filename}** has been indexed successfully!\n"
            f"Book ID: `{result.get('book_id')}`\nChunks: {chunks}"
        )
    return (
        f"❌ Failed to process **{filename}**\n"
        f"Status: {result.get('status')}\nError: {result.get('error') or 'Unknown error'}"
    )

