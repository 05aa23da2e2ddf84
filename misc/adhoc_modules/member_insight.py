from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Any, Callable

ABOUT_ME_PATTERN = re.compile(r"about\s+(me|my profile)", re.I)
USER_MENTION_PATTERN = re.compile(r"<@!?(\d+)>")
RECENT_SCAN_LIMIT = 50
RECENT_SNIPPET_CHARS = 120
TOP_ROLE_COUNT = 3
NOT_FOUND_REPLY = "I couldn’t find that member, sorry."
SIGN_OFF = "All good? Lovely jubbly. 🐾"


def target_member_id(content: str, author_id: int) -> int | None:
    if ABOUT_ME_PATTERN.search(content or ""):
        return int(author_id)
    m = USER_MENTION_PATTERN.search(content or "")
    if m:
        return int(m.group(1))
    return None


def top_role_names(roles: list[Any], limit: int = TOP_ROLE_COUNT) -> list[str]:
    named = [r for r in roles if getattr(r, "name", "") != "@everyone"]
    named.sort(key=lambda r: int(getattr(r, "position", 0) or 0), reverse=True)
    return [str(r.name) for r in named[:limit]]


def format_member_insight(
    *,
    joined_at: datetime | None,
    account_created_at: datetime,
    roles: list[str],
    recent_snippet: str,
    format_timestamp: Callable[[datetime], str],
    now: datetime | None = None,
) -> str:
    now = now or datetime.now(timezone.utc)
    days_old = max(0, (now - account_created_at).days)
    lines = [
        f"Joined: {format_timestamp(joined_at or now)}",
        f"Account age: {days_old} days",
    ]
    if roles:
        lines.append(f"Top roles: {', '.join(roles)}")
    if recent_snippet:
        lines.append(f"Recent: “{recent_snippet}”")
    lines.append(SIGN_OFF)
    return "\n".join(lines)


async def _recent_snippet(message: Any, member_id: int) -> str:
    try:
        async for msg in message.channel.history(limit=RECENT_SCAN_LIMIT):
            if int(msg.author.id) == member_id and int(msg.id) != int(message.id) and msg.content:
                return msg.content[:RECENT_SNIPPET_CHARS]
    except Exception as e:
        print(f"[Insight] recent history scan failed: {e}")
    return ""


async def build_member_insight(message: Any, *, format_timestamp: Callable[[datetime], str]) -> str:
    member_id = target_member_id(message.content, int(message.author.id))
    if member_id is None or message.guild is None:
        return NOT_FOUND_REPLY

    member = message.guild.get_member(member_id)
    if member is None:
        try:
            member = await message.guild.fetch_member(member_id)
        except Exception as e:
            print(f"[Insight] member lookup failed id={member_id}: {e}")
            member = None
    if member is None:
        return NOT_FOUND_REPLY

    return format_member_insight(
        joined_at=getattr(member, "joined_at", None),
        account_created_at=member.created_at,
        roles=top_role_names(list(getattr(member, "roles", []) or [])),
        recent_snippet=await _recent_snippet(message, member_id),
        format_timestamp=format_timestamp,
    )
