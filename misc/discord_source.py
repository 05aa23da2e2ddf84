from __future__ import annotations

from typing import Any, Iterable

import discord

from retrieval.knowledge_index import SourceUnavailable


class DiscordChannelSource:
    """Reads knowledge channels through discord.py; pages newest first."""

    def resolve_channels(
        self,
        guilds: Iterable[Any],
        channel_ids: Iterable[int],
        channel_names: Iterable[str],
    ) -> list[Any]:
        ids = [int(x) for x in channel_ids]
        names = [str(x) for x in channel_names]
        out: list[Any] = []
        seen: set[int] = set()

        for guild in guilds:
            # Explicit ids win; names only fill in when no id matched in this guild.
            found = []
            for cid in ids:
                channel = guild.get_channel(cid)
                if isinstance(channel, discord.TextChannel):
                    found.append(channel)
            if not found and names:
                for channel in getattr(guild, "text_channels", []) or []:
                    if channel.name in names:
                        found.append(channel)
            for channel in found:
                if int(channel.id) in seen:
                    continue
                seen.add(int(channel.id))
                out.append(channel)

        return out

    def can_read(self, channel: Any) -> bool:
        guild = getattr(channel, "guild", None)
        me = getattr(guild, "me", None)
        if me is None:
            return False
        perms = channel.permissions_for(me)
        return bool(perms.view_channel and perms.read_message_history)

    async def fetch_batch(self, channel: Any, before_id: int | None, limit: int) -> list[Any]:
        before = discord.Object(id=int(before_id)) if before_id is not None else None
        try:
            return [msg async for msg in channel.history(limit=int(limit), before=before)]
        except (discord.Forbidden, discord.HTTPException) as e:
            raise SourceUnavailable(f"history fetch failed: {e}") from e
