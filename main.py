"""
main.py
=======
Entry point for the Librarian Discord bot.

Usage:
    python main.py

The bot reads all configuration from the .env file (or environment variables).
Copy .env.example to .env, fill in your Discord token and Librarian settings,
optionally drop an allowed-context.json next to it, then run this file.
Register the slash command once with ``python register_commands.py``.
"""
import asyncio
import signal
import sys

import discord

from bot.client import create_bot
from bot.handlers import LibrarianHandlers
from bot.mention_upload import MentionUploader
from bot.permissions import AccessPolicy
from bot.router import InteractionRouter
from config.allowed_context import default_candidate_paths, load_allowed_context
from config.settings import ConfigurationError, Settings
from librarian.client import LibrarianClient
from utils.logger import get_logger, set_level

log = get_logger(__name__)


def build_policy(settings: Settings) -> AccessPolicy:
    """Load the allow-list once, at startup."""
    return AccessPolicy(
        allowed_map=load_allowed_context(default_candidate_paths()),
        default_policy=settings.default_policy,
        contact_user_id=settings.contact_user_id,
    )


def build_router(settings: Settings, librarian: LibrarianClient) -> InteractionRouter:
    """Wire the allowed-context policy and the handlers into a router."""
    policy = build_policy(settings)
    handlers = LibrarianHandlers(librarian)
    return InteractionRouter(
        policy,
        subcommands={
            "chat": handlers.chat,
            "search": handlers.search,
            "request": handlers.request,
            "upload": handlers.upload,
        },
        on_button=handlers.button,
    )


async def main() -> None:
    """Load configuration, then start the Discord bot."""
    settings = Settings.from_env()
    set_level(settings.log_level_number)

    log.info("Starting Librarian Discord bot (app ID %s)", settings.app_id)
    log.info("Librarian API : %s", settings.librarian_base_url)
    log.info("Unlisted guilds allowed: %s", settings.default_policy)

    librarian = LibrarianClient(
        base_url=settings.librarian_base_url,
        api_key=settings.librarian_api_key,
        timeout=settings.librarian_timeout,
    )
    router = build_router(settings, librarian)
    # @mention uploads are gated by the same policy as interactions
    bot = create_bot(router, MentionUploader(router.policy, librarian))

    # Graceful shutdown on SIGINT / SIGTERM
    loop = asyncio.get_running_loop()

    def _shutdown(sig: signal.Signals) -> None:
        log.info("Received signal %s, shutting down…", sig.name)
        loop.create_task(_cleanup(bot, librarian))

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _shutdown, sig)
        except NotImplementedError:
            # Windows does not support add_signal_handler
            pass

    try:
        await bot.start(settings.discord_token)
    finally:
        await _cleanup(bot, librarian)


async def _cleanup(bot: discord.Client, librarian: LibrarianClient) -> None:
    """Close both the Discord connection and the Librarian HTTP session."""
    if not bot.is_closed():
        log.info("Closing Discord connection…")
        await bot.close()
    await librarian.close()
    log.info("Shutdown complete.")


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except ConfigurationError as exc:
        # Missing required env vars (e.g. DISCORD_TOKEN)
        log.error("Configuration error: %s", exc)
        sys.exit(1)
    except KeyboardInterrupt:
        pass
