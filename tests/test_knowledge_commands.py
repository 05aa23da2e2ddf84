from __future__ import annotations

import unittest
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

from retrieval.knowledge_index import KnowledgeSnapshot
from retrieval.knowledge_index import make_document
from retrieval.service import RetrievalSettings

try:
    import discord
    from discord.ext import commands
except ModuleNotFoundError:
    discord = None
    commands = None

if commands is not None:
    from misc.commands.command_deps import CommandDeps
    from misc.commands.command_deps import CommandGates
    from misc.commands.commands_knowledge import format_kb_status
    from misc.commands.commands_knowledge import register as register_knowledge

NOW = datetime(2026, 3, 20, 12, 0, tzinfo=timezone.utc)


class FakeCtx:
    def __init__(self, author_id: int = 1):
        self.author = SimpleNamespace(id=author_id)
        self.channel = SimpleNamespace(id=7)
        self.sent: list = []

    async def send(self, content=None, **kwargs):
        self.sent.append(content if content is not None else kwargs)


class FakeIndex:
    def __init__(self, snapshot: KnowledgeSnapshot, *, building: bool = False):
        self.snapshot = snapshot
        self.building = building

    def current_snapshot(self):
        return self.snapshot


def _snapshot(version: int = 3) -> KnowledgeSnapshot:
    doc = make_document(
        message_id=1,
        channel_id=3,
        channel_name="faq",
        author="mod",
        content="Mint opens Friday at noon",
        created_at=datetime.now(timezone.utc) - timedelta(days=1),
    )
    return KnowledgeSnapshot(documents=(doc,), version=version, built_at=NOW)


@unittest.skipIf(commands is None, "discord.py not installed")
class KnowledgeCommandsTests(unittest.IsolatedAsyncioTestCase):
    def _bot(self, *, owner: bool, index=None, rebuilt=None):
        self.chunked: list[str] = []
        self.rebuild_calls = 0

        async def send_chunked(channel, text):
            self.chunked.append(text)

        async def rebuild():
            self.rebuild_calls += 1
            return rebuilt

        async def market_snapshot():
            return "snap"

        bot = commands.Bot(command_prefix="!", intents=discord.Intents.none())
        register_knowledge(
            bot,
            deps=CommandDeps(
                send_chunked=send_chunked,
                max_line_chars=150,
                knowledge_index=index or FakeIndex(_snapshot()),
                retrieval_settings=RetrievalSettings(min_score=1.0),
                rebuild_knowledge_func=rebuild,
                format_timestamp=lambda dt: "19/03/2026 12:00",
                market_client=SimpleNamespace(snapshot=market_snapshot),
                build_market_embed=lambda snap: f"embed:{snap}",
            ),
            gates=CommandGates(
                in_allowed_channel=lambda ctx: True,
                user_is_owner=lambda user: owner,
            ),
        )
        return bot

    async def test_rebuild_is_owner_only(self):
        bot = self._bot(owner=False)
        ctx = FakeCtx()
        await bot.get_command("kbrebuild").callback(ctx)
        self.assertEqual(ctx.sent, ["This command is owner-only."])
        self.assertEqual(self.rebuild_calls, 0)

    async def test_rebuild_reports_new_snapshot(self):
        bot = self._bot(owner=True, rebuilt=_snapshot(version=4))
        ctx = FakeCtx()
        await bot.get_command("kbrebuild").callback(ctx)
        self.assertEqual(self.rebuild_calls, 1)
        self.assertEqual(ctx.sent[-1], "Done. v4 holds 1 messages.")

    async def test_rebuild_without_channels_says_nothing_changed(self):
        bot = self._bot(owner=True, rebuilt=_snapshot())
        ctx = FakeCtx()
        await bot.get_command("kbrebuild").callback(ctx)
        self.assertEqual(self.rebuild_calls, 1)
        self.assertIn("Nothing was rebuilt", ctx.sent[-1])
        self.assertIn("v3", ctx.sent[-1])
        self.assertNotIn("Done.", ctx.sent[-1])

    async def test_rebuild_refused_while_building(self):
        bot = self._bot(owner=True, index=FakeIndex(_snapshot(), building=True))
        ctx = FakeCtx()
        await bot.get_command("kbrebuild").callback(ctx)
        self.assertEqual(self.rebuild_calls, 0)
        self.assertIn("already running", ctx.sent[0])

    async def test_status(self):
        bot = self._bot(owner=False)
        ctx = FakeCtx()
        await bot.get_command("kbstatus").callback(ctx)
        self.assertIn("v3: 1 messages", ctx.sent[0])
        self.assertIn("#faq", ctx.sent[0])

    async def test_search_lists_scored_snippets(self):
        bot = self._bot(owner=True)
        ctx = FakeCtx()
        await bot.get_command("kbsearch").callback(ctx, query="mint friday")
        self.assertEqual(len(self.chunked), 1)
        self.assertIn("(2.5) [#faq] 19/03/2026 12:00", self.chunked[0])

    async def test_search_without_matches(self):
        bot = self._bot(owner=True)
        ctx = FakeCtx()
        await bot.get_command("kbsearch").callback(ctx, query="weather")
        self.assertIn("No knowledge matches", ctx.sent[0])

    async def test_market_snapshot_command(self):
        bot = self._bot(owner=False)
        ctx = FakeCtx()
        await bot.get_command("oukii").callback(ctx)
        self.assertEqual(ctx.sent, [{"embed": "embed:snap"}])

    def test_status_for_empty_index(self):
        text = format_kb_status(KnowledgeSnapshot(), building=True)
        self.assertIn("v0: 0 messages, built never", text)
        self.assertIn("(none)", text)
        self.assertIn("rebuild is running", text)


if __name__ == "__main__":
    unittest.main()
