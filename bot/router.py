"""
bot/router.py
=============
Top-level interaction router for the Librarian bot.

Every interaction goes through the same steps:

1. No guild (a DM)            → public DM notice, stop.
2. Guild not allowed          → public server notice, stop.
3. Channel not allowed        → public channel notice, stop.
4. Slash command /librarian   → dispatch on the subcommand name.
   Button                     → dispatch on the parsed custom ID.
   Anything else              → ignored.

Slash commands owned by other code are ignored without a reply.  The
router keeps no state between interactions; the only shared data is the
read-only :class:`AccessPolicy` it is built with.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional

import discord

from bot.custom_id import ParsedCustomId, parse_custom_id
from bot.guards import disallow_dm, enforce_allowed_context
from bot.messages import UNEXPECTED_ERROR, UNKNOWN_BUTTON, UNKNOWN_SUBCOMMAND
from bot.permissions import AccessPolicy
from bot.replies import is_repliable, respond
from utils.logger import fields, get_logger

log = get_logger(__name__)

LIBRARIAN_COMMAND_NAME = "librarian"

SubcommandHandler = Callable[[discord.Interaction, "SubcommandCall"], Awaitable[None]]
ButtonHandler = Callable[[discord.Interaction, ParsedCustomId], Awaitable[None]]

# Discord application command option types
_SUB_COMMAND = 1
_SUB_COMMAND_GROUP = 2


@dataclass(frozen=True)
class SubcommandCall:
    """The subcommand name and option values of a /librarian invocation."""

    name: Optional[str]
    options: Mapping[str, Any] = field(default_factory=dict)
    attachments: Mapping[str, discord.Attachment] = field(default_factory=dict)

    def get(self, name: str, default: Any = None) -> Any:
        return self.options.get(name, default)

    def attachment(self, name: str) -> Optional[discord.Attachment]:
        """Resolve an attachment option to the uploaded file."""
        attachment_id = self.options.get(name)
        if attachment_id is None:
            return None
        return self.attachments.get(str(attachment_id))


def parse_subcommand(data: Optional[Mapping[str, Any]], state: Any) -> SubcommandCall:
    """Read the first-level subcommand and its options from raw interaction data.

    Resolved attachments are wrapped as :class:`discord.Attachment` bound to
    *state* (the client connection state), so handlers can ``read()`` them.
    """
    data = data or {}
    payloads = (data.get("resolved") or {}).get("attachments") or {}
    resolved = {
        attachment_id: discord.Attachment(data=payload, state=state)  # type: ignore[arg-type]
        for attachment_id, payload in payloads.items()
    }

    for option in data.get("options") or []:
        if option.get("type") in (_SUB_COMMAND, _SUB_COMMAND_GROUP):
            values = {o["name"]: o.get("value") for o in option.get("options") or [] if "name" in o}
            return SubcommandCall(option.get("name"), values, resolved)
    return SubcommandCall(None, {}, resolved)


def _is_button(interaction: discord.Interaction) -> bool:
    component_type = (interaction.data or {}).get("component_type")
    return component_type == discord.ComponentType.button.value


def _details(interaction: discord.Interaction) -> str:
    user = interaction.user
    return fields(
        type=getattr(interaction.type, "name", interaction.type),
        guild_id=interaction.guild_id or "DM",
        channel_id=interaction.channel_id or "DM",
        user_id=user.id if user is not None else None,
    )


class InteractionRouter:
    """Gates every interaction, then hands allowed ones to a leaf handler.

    Parameters
    ----------
    policy:
        The allowed-context policy built at startup.
    subcommands:
        Subcommand name → handler, e.g. ``{"chat": handlers.chat}``.
    on_button:
        Handler for buttons whose custom ID parses.
    """

    def __init__(
        self,
        policy: AccessPolicy,
        subcommands: Dict[str, SubcommandHandler],
        on_button: ButtonHandler,
        command_name: str = LIBRARIAN_COMMAND_NAME,
    ) -> None:
        self.policy = policy
        self.subcommands = dict(subcommands)
        self.on_button = on_button
        self.command_name = command_name

    async def dispatch(self, interaction: discord.Interaction) -> None:
        """Entry point for ``on_interaction``; never raises."""
        log.info("interaction received %s", _details(interaction))
        try:
            await self.handle(interaction)
        except Exception:
            log.exception("Unhandled error while handling interaction %s", _details(interaction))
            await self._notify_failure(interaction)
            return
        log.info("interaction responded %s", _details(interaction))

    async def handle(self, interaction: discord.Interaction) -> None:
        """Gate the interaction, then route it by type."""
        if interaction.guild_id is None:
            await disallow_dm(interaction)
            return

        if not await enforce_allowed_context(interaction, self.policy):
            return

        if interaction.type is discord.InteractionType.application_command:
            await self._route_command(interaction)
        elif interaction.type is discord.InteractionType.component and _is_button(interaction):
            await self._route_button(interaction)
        else:
            # Select menus, modals, etc. are not handled yet
            log.debug("Ignoring unsupported interaction type %s", interaction.type)

    async def _route_command(self, interaction: discord.Interaction) -> None:
        data = interaction.data or {}
        if data.get("name") != self.command_name:
            return  # not ours

        call = parse_subcommand(data, interaction._state)
        handler = self.subcommands.get(call.name or "")
        if handler is None:
            log.warning("Unknown subcommand for /%s: %s", self.command_name, call.name)
            await respond(interaction, UNKNOWN_SUBCOMMAND, ephemeral=True)
            return
        await handler(interaction, call)

    async def _route_button(self, interaction: discord.Interaction) -> None:
        custom_id = (interaction.data or {}).get("custom_id")
        parsed = parse_custom_id(custom_id)
        if parsed is None:
            log.warning("Unknown or malformed custom_id: %r", custom_id)
            await respond(interaction, UNKNOWN_BUTTON, ephemeral=True)
            return
        await self.on_button(interaction, parsed)

    @staticmethod
    async def _notify_failure(interaction: discord.Interaction) -> None:
        """Best-effort generic error notice."""
        if not is_repliable(interaction):
            return
        try:
            await respond(interaction, UNEXPECTED_ERROR, ephemeral=True)
        except Exception as exc:
            log.warning("Failed to send error notice: %s", exc)
