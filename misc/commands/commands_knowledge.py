from __future__ import annotations

from discord.ext import commands
from misc.commands.command_deps import CommandDeps
from misc.commands.command_deps import CommandGates
from retrieval.service import format_snippet
from retrieval.service import rank_documents


def format_kb_status(snapshot, *, building: bool) -> str:
    built = snapshot.built_at.strftime("%Y-%m-%d %H:%M UTC") if snapshot.built_at else "never"
    channels = sorted({d.channel_name for d in snapshot.documents})
    lines = [
        f"Knowledge base v{snapshot.version}: {len(snapshot)} messages, built {built}.",
        f"Channels: {', '.join('#' + c for c in channels) if channels else '(none)'}",
    ]
    if building:
        lines.append("A rebuild is running right now.")
    return "\n".join(lines)


def register(
    bot: commands.Bot,
    *,
    deps: CommandDeps,
    gates: CommandGates,
) -> None:
    @bot.command(name="kbrebuild")
    async def cmd_kbrebuild(ctx: commands.Context):
        if not gates.user_is_owner(ctx.author):
            await ctx.send("This command is owner-only.")
            return
        if deps.knowledge_index.building:
            await ctx.send("A knowledge rebuild is already running.")
            return

        await ctx.send("Rebuilding the knowledge base…")
        before = deps.knowledge_index.current_snapshot()
        snapshot = await deps.rebuild_knowledge_func()
        if snapshot.version == before.version:
            await ctx.send(
                f"Nothing was rebuilt: no knowledge channels were found. Still on v{snapshot.version} "
                f"with {len(snapshot)} messages."
            )
            return
        await ctx.send(f"Done. v{snapshot.version} holds {len(snapshot)} messages.")

    @bot.command(name="kbstatus")
    async def cmd_kbstatus(ctx: commands.Context):
        if not gates.in_allowed_channel(ctx) and not gates.user_is_owner(ctx.author):
            return
        snapshot = deps.knowledge_index.current_snapshot()
        await ctx.send(format_kb_status(snapshot, building=deps.knowledge_index.building))

    @bot.command(name="kbsearch")
    async def cmd_kbsearch(ctx: commands.Context, *, query: str = ""):
        if not gates.user_is_owner(ctx.author):
            await ctx.send("This command is owner-only.")
            return
        query = (query or "").strip()
        if not query:
            await ctx.send("Usage: `!kbsearch <query>`")
            return

        settings = deps.retrieval_settings
        ranked = rank_documents(
            deps.knowledge_index.current_snapshot(),
            query,
            k=settings.max_snippets,
            min_score=settings.min_score,
            recency_window=settings.recency_window,
            recency_bonus=settings.recency_bonus,
        )
        if not ranked:
            await ctx.send(f"No knowledge matches (min score {settings.min_score}).")
            return

        lines = [f"Top {len(ranked)} for `{query}`:"]
        for cand in ranked:
            snippet = format_snippet(
                cand.document,
                char_limit=deps.max_line_chars,
                format_timestamp=deps.format_timestamp,
            )
            if snippet:
                lines.append(f"- ({cand.score:.1f}) {snippet}")
        await deps.send_chunked(ctx.channel, "\n".join(lines))

    @bot.command(name="oukii")
    @commands.guild_only()
    async def cmd_oukii(ctx: commands.Context):
        if not gates.in_allowed_channel(ctx):
            return
        snapshot = await deps.market_client.snapshot()
        await ctx.send(embed=deps.build_market_embed(snapshot))
