from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from urllib.parse import quote

import discord
import httpx

from config.defaults import MAGIC_EDEN_API_BASE

MAGIC_EDEN_TIMEOUT_SECONDS = 15.0
ACTIVITY_PAGE_LIMIT = 100
SALES_WINDOW = timedelta(hours=24)
MISSING = "—"


@dataclass(frozen=True)
class MarketSnapshot:
    symbol: str
    floor: object | None = None
    listed: object | None = None
    supply: object | None = None
    sales_24h: int = 0


def _first_present(data: dict, *keys: str):
    for key in keys:
        value = data.get(key)
        if value is not None:
            return value
    return None


def count_recent_sales(activities: list[dict], *, now: datetime, window: timedelta = SALES_WINDOW) -> int:
    since = (now - window).timestamp()
    count = 0
    for act in activities or []:
        if not isinstance(act, dict) or act.get("type") != "buyNow":
            continue
        try:
            block_time = float(act.get("blockTime") or 0)
        except (TypeError, ValueError):
            continue
        if block_time >= since:
            count += 1
    return count


class MagicEdenClient:
    def __init__(self, *, symbol: str, api_key: str = "", http: httpx.AsyncClient | None = None) -> None:
        self.symbol = symbol
        self.api_key = api_key
        self._http = http

    def _headers(self) -> dict[str, str]:
        if not self.api_key:
            return {}
        return {"Authorization": f"Bearer {self.api_key}"}

    def _url(self, suffix: str) -> str:
        return f"{MAGIC_EDEN_API_BASE}/collections/{quote(self.symbol, safe='')}/{suffix}"

    async def _get_json(self, url: str, *, params: dict | None = None):
        if self._http is not None:
            resp = await self._http.get(url, params=params, headers=self._headers(), timeout=MAGIC_EDEN_TIMEOUT_SECONDS)
        else:
            async with httpx.AsyncClient(timeout=MAGIC_EDEN_TIMEOUT_SECONDS) as client:
                resp = await client.get(url, params=params, headers=self._headers())
        resp.raise_for_status()
        return resp.json()

    async def fetch_stats(self) -> dict | None:
        try:
            data = await self._get_json(self._url("stats"))
        except (httpx.HTTPError, ValueError) as e:
            print(f"[MagicEden] stats error symbol={self.symbol}: {e}")
            return None
        return data if isinstance(data, dict) else None

    async def fetch_activities(self) -> list[dict]:
        try:
            data = await self._get_json(self._url("activities"), params={"limit": ACTIVITY_PAGE_LIMIT})
        except (httpx.HTTPError, ValueError) as e:
            print(f"[MagicEden] activities error symbol={self.symbol}: {e}")
            return []
        return data if isinstance(data, list) else []

    async def snapshot(self, *, now: datetime | None = None) -> MarketSnapshot:
        stats, activities = await asyncio.gather(self.fetch_stats(), self.fetch_activities())
        stats = stats or {}
        return MarketSnapshot(
            symbol=self.symbol,
            floor=_first_present(stats, "floorPrice", "floor_price", "floor"),
            listed=_first_present(stats, "listedCount", "listed"),
            supply=_first_present(stats, "supply", "totalSupply"),
            sales_24h=count_recent_sales(activities, now=now or datetime.now(timezone.utc)),
        )


def build_market_embed(snapshot: MarketSnapshot, *, now: datetime | None = None) -> discord.Embed:
    embed = discord.Embed(
        title=f"{snapshot.symbol.upper()} — Magic Eden snapshot",
        description="Quick stats for the last 24h",
        timestamp=now or datetime.now(timezone.utc),
    )
    embed.add_field(name="Floor", value=str(snapshot.floor) if snapshot.floor else MISSING, inline=True)
    embed.add_field(name="Listed", value=str(snapshot.listed) if snapshot.listed is not None else MISSING, inline=True)
    embed.add_field(name="24h sales", value=str(snapshot.sales_24h), inline=True)
    embed.add_field(
        name="Supply (if known)",
        value=str(snapshot.supply) if snapshot.supply is not None else "Not exposed",
        inline=True,
    )
    embed.set_footer(text="Data: Magic Eden")
    return embed
