"""
bot/messages.py
===============
User-facing strings shared by the guards, the router and the handlers.
The denial notices are public copy and must not change wording.
"""
from typing import Optional

DM_BLOCKED = "This bot is not available in DMs."
CHANNEL_BLOCKED = "This bot is not available in this channel."

UNKNOWN_SUBCOMMAND = "Unknown subcommand."
UNKNOWN_BUTTON = "Unknown action for this button."
UNEXPECTED_ERROR = "An unexpected error occurred."

ASK_HINT = "Use /librarian chat to ask your question. The assistant will reference indexed content as context."


def server_blocked(contact: Optional[str] = None) -> str:
    """Guild denial notice, naming *contact* (a user mention) when given."""
    if contact:
        return f"This bot is not available in this server. Please contact {contact}."
    return "This bot is not available in this server."
