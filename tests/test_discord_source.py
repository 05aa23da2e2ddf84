from __future__ import annotations

import unittest
from types import SimpleNamespace
from unittest import mock

try:
    import discord

    from misc.discord_source import DiscordChannelSource
    from retrieval.knowledge_index import SourceUnavailable
except ModuleNotFoundError:
    DiscordChannelSource = None


class FakeTextChannel:
    def __init__(self, channel_id: int, name: str, *, messages=None, perms=None, error=None):
        self.id = channel_id
        self.name = name
        self.messages = messages or []
        self.perms = perms or SimpleNamespace(view_channel=True, read_message_history=True)
        self.error = error
        self.guild = SimpleNamespace(me=SimpleNamespace(id=1))
        self.history_calls = []

    def permissions_for(self, member):
        return self.perms

    def history(self, *, limit, before=None):
        self.history_calls.append((limit, getattr(before, "id", None)))
        error = self.error
        messages = self.messages[:limit]

        async def gen():
            if error is not None:
                raise error
            for m in messages:
                yield m

        return gen()


class FakeGuild:
    def __init__(self, channels):
        self.text_channels = channels
        self._by_id = {c.id: c for c in channels}

    def get_channel(self, channel_id):
        return self._by_id.get(channel_id)


@unittest.skipIf(DiscordChannelSource is None, "discord.py not installed")
class DiscordChannelSourceTests(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        patcher = mock.patch("misc.discord_source.discord.TextChannel", FakeTextChannel)
        patcher.start()
        self.addCleanup(patcher.stop)
        self.source = DiscordChannelSource()

    def test_ids_win_over_names(self):
        faq = FakeTextChannel(11, "faq")
        rules = FakeTextChannel(12, "rules")
        guild = FakeGuild([faq, rules])
        self.assertEqual(self.source.resolve_channels([guild], [12], ["faq"]), [rules])

    def test_names_used_when_no_id_matches(self):
        faq = FakeTextChannel(11, "faq")
        guild = FakeGuild([faq, FakeTextChannel(12, "general")])
        self.assertEqual(self.source.resolve_channels([guild], [999], ["faq"]), [faq])

    def test_can_read_needs_view_and_history(self):
        ok = FakeTextChannel(1, "a")
        blind = FakeTextChannel(2, "b", perms=SimpleNamespace(view_channel=True, read_message_history=False))
        self.assertTrue(self.source.can_read(ok))
        self.assertFalse(self.source.can_read(blind))

    async def test_fetch_batch_pages_with_before(self):
        channel = FakeTextChannel(1, "a", messages=[SimpleNamespace(id=5), SimpleNamespace(id=4)])
        out = await self.source.fetch_batch(channel, 6, 100)
        self.assertEqual([m.id for m in out], [5, 4])
        self.assertEqual(channel.history_calls, [(100, 6)])

    async def test_fetch_errors_become_source_unavailable(self):
        response = SimpleNamespace(status=403, reason="Forbidden")
        channel = FakeTextChannel(1, "a", error=discord.Forbidden(response, "Missing Access"))
        with self.assertRaises(SourceUnavailable):
            await self.source.fetch_batch(channel, None, 100)


if __name__ == "__main__":
    unittest.main()
