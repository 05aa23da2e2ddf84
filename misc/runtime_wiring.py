from __future__ import annotations

import random

from config.persona import Persona
from config.settings import Settings
from jobs.idle_starters import ChannelActivity
from jobs.idle_starters import IdleStarterService
from jobs.idle_starters import StickerQuota
from jobs.idle_starters import idle_starter_loop
from jobs.idle_starters import knowledge_refresh_loop
from misc.adhoc_modules.magic_eden import MagicEdenClient
from misc.adhoc_modules.magic_eden import build_market_embed
from misc.adhoc_modules.member_insight import build_member_insight
from misc.adhoc_modules.tenor import TenorClient
from misc.commands.command_deps import CommandDeps
from misc.commands.command_deps import CommandGates
from misc.commands.commands_knowledge import register as register_knowledge
from misc.discord_gates import allowed_channel
from misc.discord_gates import user_is_owner
from misc.discord_source import DiscordChannelSource
from misc.discord_text import send_chunked
from misc.discord_timestamps import make_display_formatter
from misc.discord_timestamps import resolve_timezone
from misc.events_runtime import register_runtime_events
from misc.runtime_deps import RuntimeBootDeps
from misc.runtime_deps import RuntimeDeps
from retrieval.knowledge_index import KnowledgeIndex


def wire_bot_runtime(
    bot,
    *,
    settings: Settings,
    persona: Persona,
    knowledge_index: KnowledgeIndex,
    knowledge_source: DiscordChannelSource,
    llm,
    tenor: TenorClient,
    market_client: MagicEdenClient,
    idle_tick_seconds: int,
    rng: random.Random | None = None,
) -> None:
    rng = rng or random.Random()
    behaviour = settings.behaviour
    knowledge = settings.knowledge
    format_timestamp = make_display_formatter(behaviour.timezone)

    def channel_allowed(channel) -> bool:
        return allowed_channel(channel, behaviour.channel_name_allowlist)

    def in_allowed_channel(ctx) -> bool:
        try:
            return channel_allowed(ctx.channel)
        except Exception:
            return False

    def owner_check(user) -> bool:
        return user_is_owner(user, behaviour.owner_user_ids)

    async def rebuild_knowledge():
        channels = knowledge_source.resolve_channels(bot.guilds, knowledge.channel_ids, knowledge.channel_names)
        if knowledge.configured and not channels:
            print("[KB] Configured knowledge channels were not found in any guild.")
        return await knowledge_index.build(
            channels,
            per_source_cap=knowledge.max_messages_per_source,
            global_budget=knowledge.global_budget,
        )

    activity = ChannelActivity()
    quota = StickerQuota(
        tz=resolve_timezone(behaviour.timezone),
        daily_limit=settings.media.sticker_daily_limit,
        start_hour=settings.media.sticker_day_start_hour,
        end_hour=settings.media.sticker_day_end_hour,
    )
    idle_service = IdleStarterService(
        activity=activity,
        quota=quota,
        search_gif=tenor.search,
        persona=persona,
        llm=llm,
        model_settings=settings.model,
        behaviour=behaviour,
        media=settings.media,
        allowed_channel=channel_allowed,
        rng=rng,
    )

    async def idle_loop():
        return await idle_starter_loop(bot=bot, idle_service=idle_service, interval_seconds=idle_tick_seconds)

    async def refresh_loop():
        return await knowledge_refresh_loop(rebuild_func=rebuild_knowledge, interval_minutes=knowledge.refresh_minutes)

    register_knowledge(
        bot,
        deps=CommandDeps(
            send_chunked=send_chunked,
            max_line_chars=knowledge.retrieval.snippet_char_limit,
            knowledge_index=knowledge_index,
            retrieval_settings=knowledge.retrieval,
            rebuild_knowledge_func=rebuild_knowledge,
            format_timestamp=format_timestamp,
            market_client=market_client,
            build_market_embed=build_market_embed,
        ),
        gates=CommandGates(
            in_allowed_channel=in_allowed_channel,
            user_is_owner=owner_check,
        ),
    )

    register_runtime_events(
        bot,
        deps=RuntimeDeps(
            allowed_channel=channel_allowed,
            format_timestamp=format_timestamp,
            reply_chance=behaviour.reply_chance,
            reply_chance_question=behaviour.reply_chance_question,
            random_func=rng.random,
            knowledge_index=knowledge_index,
            retrieval_settings=knowledge.retrieval,
            persona=persona,
            llm=llm,
            model_settings=settings.model,
            activity=activity,
            sticker_quota=quota,
            search_gif=tenor.search,
            market_client=market_client,
            build_market_embed=build_market_embed,
            build_member_insight=build_member_insight,
        ),
        boot=RuntimeBootDeps(
            rebuild_knowledge_func=rebuild_knowledge,
            idle_loop_func=idle_loop,
            refresh_loop_func=refresh_loop,
            refresh_minutes=knowledge.refresh_minutes,
        ),
    )
