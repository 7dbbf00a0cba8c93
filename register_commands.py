"""
register_commands.py
====================
Publishes the /librarian slash command to Discord.

Usage:
    python register_commands.py

Run it once after changing the command schema.  Set
DISCORD_ALLOWED_GUILD_IDS to register per guild while testing.
"""
import asyncio
import sys

from bot.registration import register_commands
from config.settings import ConfigurationError, Settings
from utils.logger import get_logger, set_level

log = get_logger(__name__)


async def main() -> None:
    settings = Settings.from_env()
    set_level(settings.log_level_number)
    await register_commands(settings)


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except ConfigurationError as exc:
        log.error("Configuration error: %s", exc)
        sys.exit(1)
    except Exception:
        log.exception("register-commands failed")
        sys.exit(1)
