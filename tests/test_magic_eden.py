from __future__ import annotations

import unittest
from datetime import datetime, timedelta, timezone

import httpx

try:
    from misc.adhoc_modules.magic_eden import MagicEdenClient
    from misc.adhoc_modules.magic_eden import MarketSnapshot
    from misc.adhoc_modules.magic_eden import build_market_embed
    from misc.adhoc_modules.magic_eden import count_recent_sales
except ModuleNotFoundError:
    MagicEdenClient = None

NOW = datetime(2026, 3, 20, 12, 0, tzinfo=timezone.utc)


def _ts(hours_ago: float) -> int:
    return int((NOW - timedelta(hours=hours_ago)).timestamp())


@unittest.skipIf(MagicEdenClient is None, "discord.py not installed")
class MagicEdenTests(unittest.IsolatedAsyncioTestCase):
    async def test_snapshot_combines_stats_and_recent_sales(self):
        seen_paths = []
        seen_auth = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen_paths.append(request.url.path)
            seen_auth.append(request.headers.get("authorization"))
            if request.url.path.endswith("/stats"):
                return httpx.Response(200, json={"floorPrice": 1.25, "listedCount": 42})
            return httpx.Response(
                200,
                json=[
                    {"type": "buyNow", "blockTime": _ts(1)},
                    {"type": "buyNow", "blockTime": _ts(30)},
                    {"type": "list", "blockTime": _ts(2)},
                    {"type": "buyNow", "blockTime": _ts(23)},
                ],
            )

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            client = MagicEdenClient(symbol="oukii", api_key="me-key", http=http)
            snap = await client.snapshot(now=NOW)

        self.assertEqual(snap.floor, 1.25)
        self.assertEqual(snap.listed, 42)
        self.assertIsNone(snap.supply)
        self.assertEqual(snap.sales_24h, 2)
        self.assertIn("/v2/collections/oukii/stats", seen_paths)
        self.assertIn("/v2/collections/oukii/activities", seen_paths)
        self.assertEqual(set(seen_auth), {"Bearer me-key"})

    async def test_failures_degrade_to_empty_snapshot(self):
        async with httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(503))) as http:
            snap = await MagicEdenClient(symbol="oukii", http=http).snapshot(now=NOW)
        self.assertEqual(snap, MarketSnapshot(symbol="oukii"))

    def test_count_recent_sales_ignores_bad_rows(self):
        rows = [{"type": "buyNow", "blockTime": "nope"}, None, {"type": "buyNow", "blockTime": _ts(5)}]
        self.assertEqual(count_recent_sales(rows, now=NOW), 1)

    def test_embed_fields(self):
        embed = build_market_embed(MarketSnapshot(symbol="oukii", floor=1.5, listed=None, sales_24h=3), now=NOW)
        values = {f.name: f.value for f in embed.fields}
        self.assertEqual(values["Floor"], "1.5")
        self.assertEqual(values["Listed"], "—")
        self.assertEqual(values["24h sales"], "3")
        self.assertEqual(values["Supply (if known)"], "Not exposed")
        self.assertEqual(embed.footer.text, "Data: Magic Eden")


if __name__ == "__main__":
    unittest.main()
