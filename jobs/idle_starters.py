from __future__ import annotations

import asyncio
import random
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable
from zoneinfo import ZoneInfo

from config.persona import Persona
from config.settings import BehaviourSettings
from config.settings import MediaSettings
from config.settings import ModelSettings
from controller.llm_client import ChatModelClient
from controller.reply_service import build_starter_text
from misc.discord_timestamps import local_day_key
from misc.discord_timestamps import within_local_hours

IDLE_STICKER_QUERY = "hello"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ChannelActivity:
    """Per-channel bookkeeping shared by the message handler and the idle loop. Last write wins."""

    started_at: datetime = field(default_factory=_utcnow)
    last_message_at: dict[int, datetime] = field(default_factory=dict)
    last_starter_at: dict[int, datetime] = field(default_factory=dict)
    last_reply: dict[int, str] = field(default_factory=dict)

    def note_message(self, channel_id: int, at: datetime | None = None) -> None:
        self.last_message_at[int(channel_id)] = at or _utcnow()

    def note_starter(self, channel_id: int, at: datetime | None = None) -> None:
        self.last_starter_at[int(channel_id)] = at or _utcnow()

    def note_reply(self, channel_id: int, text: str) -> None:
        self.last_reply[int(channel_id)] = text

    def previous_reply(self, channel_id: int) -> str | None:
        return self.last_reply.get(int(channel_id))

    def idle_since(self, channel_id: int) -> datetime:
        # Channels with no traffic seen since startup count as idle from startup.
        return self.last_message_at.get(int(channel_id), self.started_at)


class StickerQuota:
    """Daily sticker counter that resets when the local day changes."""

    def __init__(self, *, tz: ZoneInfo, daily_limit: int, start_hour: int, end_hour: int) -> None:
        self.tz = tz
        self.daily_limit = max(0, int(daily_limit))
        self.start_hour = int(start_hour)
        self.end_hour = int(end_hour)
        self.day_key = ""
        self.count = 0

    def _roll(self, now: datetime | None) -> None:
        key = local_day_key(self.tz, now)
        if key != self.day_key:
            self.day_key = key
            self.count = 0

    def available(self, now: datetime | None = None) -> bool:
        self._roll(now)
        return self.count < self.daily_limit

    def in_window(self, now: datetime | None = None) -> bool:
        return within_local_hours(self.tz, self.start_hour, self.end_hour, now)

    def consume(self, now: datetime | None = None) -> None:
        self._roll(now)
        self.count += 1


class IdleStarterService:
    def __init__(
        self,
        *,
        activity: ChannelActivity,
        quota: StickerQuota,
        search_gif: Callable[..., Awaitable[str | None]],
        persona: Persona,
        llm: ChatModelClient | None,
        model_settings: ModelSettings,
        behaviour: BehaviourSettings,
        media: MediaSettings,
        allowed_channel: Callable[[Any], bool],
        rng: random.Random | None = None,
    ) -> None:
        self.activity = activity
        self.quota = quota
        self.search_gif = search_gif
        self.persona = persona
        self.llm = llm
        self.model_settings = model_settings
        self.behaviour = behaviour
        self.media = media
        self.allowed_channel = allowed_channel
        self.rng = rng or random.Random()

    def is_due(self, channel_id: int, now: datetime) -> bool:
        if now - self.activity.idle_since(channel_id) < self.behaviour.idle_after:
            return False
        last_starter = self.activity.last_starter_at.get(int(channel_id))
        if last_starter is not None and now - last_starter < self.behaviour.starter_cooldown:
            return False
        return True

    async def maybe_post(self, channel: Any, *, now: datetime | None = None) -> str | None:
        """Post one icebreaker when the channel is idle and off cooldown. Returns what was sent."""
        if not self.allowed_channel(channel):
            return None
        now = now or _utcnow()
        channel_id = int(channel.id)
        if not self.is_due(channel_id, now):
            return None

        self.activity.note_starter(channel_id, now)

        drop_sticker = self.rng.random() < self.media.sticker_idle_chance
        if drop_sticker and self.quota.available(now) and self.quota.in_window(now):
            url = await self.search_gif(IDLE_STICKER_QUERY, sticker=True)
            if url:
                self.quota.consume(now)
                await channel.send(url)
                print(f"[Idle] sticker channel={channel_id} today={self.quota.count}")
                return url

        text = await build_starter_text(
            persona=self.persona,
            llm=self.llm,
            model_settings=self.model_settings,
            use_ai=self.behaviour.starter_use_ai,
            pick=self.rng.choice,
        )
        await channel.send(text)
        print(f"[Idle] starter channel={channel_id}")
        return text

    async def run_tick(self, bot, *, now: datetime | None = None) -> int:
        posted = 0
        for guild in list(getattr(bot, "guilds", []) or []):
            for channel in list(getattr(guild, "text_channels", []) or []):
                try:
                    if await self.maybe_post(channel, now=now):
                        posted += 1
                except Exception as e:
                    print(f"[Idle] channel={getattr(channel, 'id', '?')} error: {e}")
        return posted


async def idle_starter_loop(
    *,
    bot,
    idle_service: IdleStarterService,
    interval_seconds: int = 60,
) -> None:
    while True:
        try:
            await idle_service.run_tick(bot)
        except Exception as e:
            print(f"[Idle] loop error: {e}")
        await asyncio.sleep(max(10, int(interval_seconds)))


async def knowledge_refresh_loop(
    *,
    rebuild_func: Callable[[], Awaitable[Any]],
    interval_minutes: int,
) -> None:
    if int(interval_minutes) <= 0:
        return

    while True:
        await asyncio.sleep(max(60, int(interval_minutes) * 60))
        try:
            await rebuild_func()
        except Exception as e:
            print(f"[KB] refresh loop error: {e}")
