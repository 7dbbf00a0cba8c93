"""
Tests for the interaction router: gating, dispatch and failure handling.
"""

import unittest
from unittest.mock import AsyncMock, MagicMock

import discord

from bot.custom_id import ButtonAction, ByFilename, ParsedCustomId
from bot.messages import CHANNEL_BLOCKED, DM_BLOCKED, UNEXPECTED_ERROR, UNKNOWN_BUTTON, UNKNOWN_SUBCOMMAND
from bot.permissions import AccessPolicy
from bot.router import InteractionRouter, SubcommandCall, parse_subcommand
from config.allowed_context import AllowedContextMap
from fakes import button_data, command_data, make_interaction


def _router(policy=None):
    policy = policy or AccessPolicy(None)
    handlers = {"chat": AsyncMock(), "search": AsyncMock()}
    on_button = AsyncMock()
    return InteractionRouter(policy, handlers, on_button), handlers, on_button


class TestGate(unittest.IsolatedAsyncioTestCase):
    async def test_dm_denied_before_any_lookup(self):
        policy = MagicMock()
        router, handlers, _ = _router(policy)
        interaction = make_interaction(guild_id=None, channel_id=5, data=command_data("chat", prompt="hi"))

        await router.dispatch(interaction)

        interaction.response.send_message.assert_awaited_once_with(DM_BLOCKED, ephemeral=False)
        policy.guild_allowed.assert_not_called()
        policy.channel_allowed.assert_not_called()
        handlers["chat"].assert_not_awaited()

    async def test_guild_denied_with_contact(self):
        policy = AccessPolicy(AllowedContextMap({"1": []}), default_policy=False, contact_user_id="99")
        router, handlers, _ = _router(policy)
        interaction = make_interaction(guild_id=2, channel_id=3, data=command_data("chat", prompt="hi"))

        await router.dispatch(interaction)

        interaction.response.send_message.assert_awaited_once_with(
            "This bot is not available in this server. Please contact <@99>.", ephemeral=False
        )
        handlers["chat"].assert_not_awaited()

    async def test_guild_denied_without_contact(self):
        policy = AccessPolicy(AllowedContextMap({}), default_policy=False)
        router, _, _ = _router(policy)
        interaction = make_interaction(guild_id=2, channel_id=3, data=command_data("chat", prompt="hi"))

        await router.dispatch(interaction)

        interaction.response.send_message.assert_awaited_once_with(
            "This bot is not available in this server.", ephemeral=False
        )

    async def test_channel_denied(self):
        policy = AccessPolicy(AllowedContextMap({"1": ["10"]}), default_policy=False)
        router, handlers, on_button = _router(policy)
        interaction = make_interaction(
            guild_id=1,
            channel_id=11,
            interaction_type=discord.InteractionType.component,
            data=button_data("LIB:ASK:bookId=1"),
        )

        await router.dispatch(interaction)

        interaction.response.send_message.assert_awaited_once_with(CHANNEL_BLOCKED, ephemeral=False)
        on_button.assert_not_awaited()

    async def test_allowed_channel_reaches_handler(self):
        policy = AccessPolicy(AllowedContextMap({"1": ["10"]}), default_policy=False)
        router, handlers, _ = _router(policy)
        interaction = make_interaction(guild_id=1, channel_id=10, data=command_data("chat", prompt="hi"))

        await router.dispatch(interaction)

        handlers["chat"].assert_awaited_once()
        _, call = handlers["chat"].await_args.args
        self.assertEqual(call.name, "chat")
        self.assertEqual(call.get("prompt"), "hi")

    async def test_autocomplete_rejected_silently(self):
        router, handlers, _ = _router()
        interaction = make_interaction(
            interaction_type=discord.InteractionType.autocomplete,
            data=command_data("chat", prompt="h"),
        )

        await router.dispatch(interaction)

        interaction.response.send_message.assert_not_awaited()
        handlers["chat"].assert_not_awaited()


class TestDispatch(unittest.IsolatedAsyncioTestCase):
    async def test_other_commands_ignored(self):
        router, handlers, _ = _router()
        interaction = make_interaction(data=command_data("chat", name="weather", prompt="hi"))

        await router.dispatch(interaction)

        handlers["chat"].assert_not_awaited()
        interaction.response.send_message.assert_not_awaited()

    async def test_upload_attachment_downloads_through_client_http(self):
        received = {}

        async def upload(inter, call):
            received["data"] = await call.attachment("file").read()

        router = InteractionRouter(AccessPolicy(None), {"upload": upload}, AsyncMock())
        data = command_data("upload", file="9")
        data["resolved"] = {
            "attachments": {
                "9": {"id": "9", "filename": "a.pdf", "size": 4, "url": "https://cdn/a.pdf", "proxy_url": "https://media/a.pdf"}
            }
        }
        interaction = make_interaction(data=data)
        interaction._state.http.get_from_cdn = AsyncMock(return_value=b"%PDF")

        await router.dispatch(interaction)

        interaction._state.http.get_from_cdn.assert_awaited_once_with("https://cdn/a.pdf")
        self.assertEqual(received["data"], b"%PDF")

    async def test_unknown_subcommand(self):
        router, _, _ = _router()
        interaction = make_interaction(data=command_data("dance"))

        with self.assertLogs("bot.router", level="WARNING"):
            await router.dispatch(interaction)

        interaction.response.send_message.assert_awaited_once_with(UNKNOWN_SUBCOMMAND, ephemeral=True)

    async def test_button_dispatch(self):
        router, _, on_button = _router()
        interaction = make_interaction(
            interaction_type=discord.InteractionType.component,
            data=button_data("LIB:UPLOAD:filename=a.pdf;r=2;b=1"),
        )

        await router.dispatch(interaction)

        on_button.assert_awaited_once_with(
            interaction, ParsedCustomId(ButtonAction.UPLOAD, ByFilename("a.pdf"))
        )

    async def test_unparseable_button(self):
        router, _, on_button = _router()
        interaction = make_interaction(
            interaction_type=discord.InteractionType.component,
            data=button_data("GARBAGE"),
        )

        await router.dispatch(interaction)

        on_button.assert_not_awaited()
        interaction.response.send_message.assert_awaited_once_with(UNKNOWN_BUTTON, ephemeral=True)

    async def test_select_menus_ignored(self):
        router, _, on_button = _router()
        interaction = make_interaction(
            interaction_type=discord.InteractionType.component,
            data=button_data("LIB:ASK:bookId=1", component_type=3),
        )

        await router.dispatch(interaction)

        on_button.assert_not_awaited()
        interaction.response.send_message.assert_not_awaited()

    async def test_modal_submissions_ignored(self):
        router, handlers, on_button = _router()
        interaction = make_interaction(interaction_type=discord.InteractionType.modal_submit, data={"custom_id": "x"})

        await router.dispatch(interaction)

        on_button.assert_not_awaited()
        interaction.response.send_message.assert_not_awaited()


class TestFailures(unittest.IsolatedAsyncioTestCase):
    async def test_handler_error_reported_not_raised(self):
        router, handlers, _ = _router()
        handlers["chat"].side_effect = RuntimeError("boom")
        interaction = make_interaction(data=command_data("chat", prompt="hi"))

        with self.assertLogs("bot.router", level="ERROR"):
            await router.dispatch(interaction)

        interaction.response.send_message.assert_awaited_once_with(UNEXPECTED_ERROR, ephemeral=True)

    async def test_error_after_defer_uses_followup(self):
        router, _, on_button = _router()
        interaction = make_interaction(
            interaction_type=discord.InteractionType.component,
            data=button_data("LIB:ASK:bookId=7"),
        )

        async def defer_then_fail(inter, parsed):
            await inter.response.defer()
            raise RuntimeError("boom")

        on_button.side_effect = defer_then_fail

        with self.assertLogs("bot.router", level="ERROR"):
            await router.dispatch(interaction)

        interaction.followup.send.assert_awaited_once_with(UNEXPECTED_ERROR, ephemeral=True)

    async def test_failed_error_notice_is_swallowed(self):
        router, handlers, _ = _router()
        handlers["search"].side_effect = RuntimeError("boom")
        interaction = make_interaction(data=command_data("search", query="q"))
        interaction.response.send_message.side_effect = RuntimeError("gone")

        with self.assertLogs("bot.router", level="ERROR"):
            await router.dispatch(interaction)


class TestParseSubcommand(unittest.TestCase):
    def test_reads_options_and_attachments(self):
        data = {
            "name": "librarian",
            "options": [
                {"name": "upload", "type": 1, "options": [{"name": "file", "type": 11, "value": "555"}]}
            ],
            "resolved": {
                "attachments": {
                    "555": {
                        "id": "555",
                        "filename": "a.pdf",
                        "size": 10,
                        "url": "https://cdn/a.pdf",
                        "proxy_url": "https://media/a.pdf",
                    }
                }
            },
        }
        call = parse_subcommand(data, MagicMock())
        self.assertEqual(call.name, "upload")
        attachment = call.attachment("file")
        self.assertIsInstance(attachment, discord.Attachment)
        self.assertEqual((attachment.id, attachment.filename, attachment.size), (555, "a.pdf", 10))
        self.assertIsNone(call.attachment("missing"))

    def test_no_subcommand(self):
        self.assertEqual(parse_subcommand({"name": "librarian"}, MagicMock()), SubcommandCall(None, {}, {}))
        self.assertIsNone(parse_subcommand(None, MagicMock()).name)


if __name__ == "__main__":
    unittest.main()
