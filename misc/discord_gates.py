from __future__ import annotations

import discord

from config.defaults import BUSY_THREAD_MEMBER_COUNT


def allowed_channel(channel, name_allowlist: set[str]) -> bool:
    # Guild text channels only; an empty allowlist opens every text channel.
    if channel is None or not isinstance(channel, discord.TextChannel):
        return False
    if not name_allowlist:
        return True
    return str(getattr(channel, "name", "") or "") in name_allowlist


def mentions_other_user(message: discord.Message, *, bot_user_id: int | None = None) -> bool:
    mentions = getattr(message, "mentions", None) or []
    author_id = int(getattr(message.author, "id", 0) or 0)
    for user in mentions:
        uid = int(getattr(user, "id", 0) or 0)
        if uid == author_id:
            continue
        if bot_user_id is not None and uid == int(bot_user_id):
            continue
        return True
    return False


def mentions_bot(message: discord.Message, bot_user_id: int | None) -> bool:
    if bot_user_id is None:
        return False
    return any(int(getattr(u, "id", 0) or 0) == int(bot_user_id) for u in (getattr(message, "mentions", None) or []))


def in_busy_thread(channel) -> bool:
    if not isinstance(channel, discord.Thread):
        return False
    return int(getattr(channel, "member_count", 0) or 0) > BUSY_THREAD_MEMBER_COUNT


def user_is_owner(user, owner_user_ids: set[int]) -> bool:
    return int(getattr(user, "id", 0) or 0) in owner_user_ids
