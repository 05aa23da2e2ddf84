from __future__ import annotations

import asyncio
import re

import discord
from controller.reply_service import build_grounded_reply
from discord.ext import commands
from misc.discord_gates import in_busy_thread
from misc.discord_gates import mentions_bot
from misc.discord_gates import mentions_other_user
from misc.mention_routes import ROUTE_GIF
from misc.mention_routes import ROUTE_MARKET_STATS
from misc.mention_routes import ROUTE_MEMBER_INSIGHT
from misc.mention_routes import ROUTE_STICKER
from misc.mention_routes import classify_message_route
from misc.mention_routes import is_question_like
from misc.runtime_deps import RuntimeBootDeps
from misc.runtime_deps import RuntimeDeps

GIF_NOT_FOUND_REPLY = "Couldn’t find a good one, sorry!"
DEFAULT_STICKER_QUERY = "hello"


def strip_bot_mention(text: str, bot_user_id: int | None) -> str:
    if bot_user_id is None:
        return (text or "").strip()
    return re.sub(rf"<@!?\s*{int(bot_user_id)}\s*>", "", text or "").strip()


def reply_chance_for(text: str, deps: RuntimeDeps) -> float:
    return deps.reply_chance_question if is_question_like(text) else deps.reply_chance


async def handle_message(message: discord.Message, *, deps: RuntimeDeps, bot_user_id: int | None) -> str:
    """Route one guild message. Returns a short outcome label for logs and tests."""
    if message.author.bot:
        return "ignored"
    if message.guild is None:
        return "ignored"
    if not deps.allowed_channel(message.channel):
        return "ignored"

    channel_id = int(message.channel.id)
    deps.activity.note_message(channel_id)

    text = (message.content or "").strip()
    route = classify_message_route(text)

    if in_busy_thread(message.channel):
        return "quiet"
    # Member insight names its target by mention, so it is not a side conversation.
    if route.kind != ROUTE_MEMBER_INSIGHT and mentions_other_user(message, bot_user_id=bot_user_id):
        return "quiet"

    if route.kind == ROUTE_GIF:
        url = await deps.search_gif(route.query, sticker=route.sticker)
        if url:
            await message.channel.send(url)
            return "gif"
        await message.reply(GIF_NOT_FOUND_REPLY, mention_author=False)
        return "gif_missing"

    if route.kind == ROUTE_STICKER:
        if not deps.sticker_quota.available():
            return "sticker_quota"
        url = await deps.search_gif(route.query or DEFAULT_STICKER_QUERY, sticker=True)
        if not url:
            return "sticker_missing"
        deps.sticker_quota.consume()
        await message.channel.send(url)
        return "sticker"

    if route.kind == ROUTE_MEMBER_INSIGHT:
        info = await deps.build_member_insight(message, format_timestamp=deps.format_timestamp)
        await message.reply(info, mention_author=False)
        return "member_insight"

    if route.kind == ROUTE_MARKET_STATS:
        snapshot = await deps.market_client.snapshot()
        await message.channel.send(embed=deps.build_market_embed(snapshot))
        return "market_stats"

    # A direct mention always gets an answer; everything else is a dice roll.
    if not mentions_bot(message, bot_user_id):
        if deps.random_func() > reply_chance_for(text, deps):
            return "skipped"

    prompt_text = strip_bot_mention(text, bot_user_id) or text
    reply = await build_grounded_reply(
        prompt_text,
        snapshot=deps.knowledge_index.current_snapshot(),
        retrieval=deps.retrieval_settings,
        persona=deps.persona,
        llm=deps.llm,
        model_settings=deps.model_settings,
        format_timestamp=deps.format_timestamp,
        last_reply=deps.activity.previous_reply(channel_id),
    )
    await message.reply(reply.text, mention_author=False)
    deps.activity.note_reply(channel_id, reply.text)
    print(
        f"[Runtime] reply channel={channel_id} snippets={len(reply.snippets)} "
        f"model={'yes' if reply.used_model else 'canned'}"
    )
    return "reply"


def register_runtime_events(
    bot: commands.Bot,
    *,
    deps: RuntimeDeps,
    boot: RuntimeBootDeps,
) -> None:
    @bot.event
    async def on_ready():
        print(f"Oukii is online as {bot.user}")

        if not getattr(bot, "_knowledge_bootstrapped", False):
            bot._knowledge_bootstrapped = True
            await boot.rebuild_knowledge_func()

        if not getattr(bot, "_idle_task", None):
            bot._idle_task = asyncio.create_task(boot.idle_loop_func())
            print("[Idle] starter loop started")

        if boot.refresh_minutes > 0 and not getattr(bot, "_refresh_task", None):
            bot._refresh_task = asyncio.create_task(boot.refresh_loop_func())
            print(f"[KB] refresh loop started every {boot.refresh_minutes} min")

    @bot.event
    async def on_message(message: discord.Message):
        if (message.content or "").lstrip().startswith("!"):
            await bot.process_commands(message)
            return

        try:
            await handle_message(message, deps=deps, bot_user_id=bot.user.id if bot.user else None)
        except Exception as e:
            print(f"[Runtime] message handler error: {e}")
