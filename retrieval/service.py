from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable

from config.defaults import DEFAULT_KB_MAX_SNIPPETS
from config.defaults import DEFAULT_KB_MIN_SCORE
from config.defaults import DEFAULT_KB_RECENCY_BONUS
from config.defaults import DEFAULT_KB_RECENCY_DAYS
from config.defaults import DEFAULT_KB_SNIPPET_CHARS
from config.defaults import DEFAULT_KB_TOTAL_CHARS
from config.defaults import NOTES_MARKER
from retrieval.knowledge_index import Document
from retrieval.knowledge_index import KnowledgeSnapshot
from retrieval.tokenize import tokenize

SNIPPET_SEPARATOR = " — "
ELLIPSIS = "…"


@dataclass(frozen=True)
class RetrievalSettings:
    max_snippets: int = DEFAULT_KB_MAX_SNIPPETS
    min_score: float = DEFAULT_KB_MIN_SCORE
    snippet_char_limit: int = DEFAULT_KB_SNIPPET_CHARS
    total_char_limit: int = DEFAULT_KB_TOTAL_CHARS
    recency_window: timedelta = timedelta(days=DEFAULT_KB_RECENCY_DAYS)
    recency_bonus: float = DEFAULT_KB_RECENCY_BONUS


@dataclass(frozen=True, slots=True)
class ScoredCandidate:
    document: Document
    score: float


def default_timestamp_format(dt: datetime) -> str:
    return dt.astimezone(timezone.utc).strftime("%d/%m/%Y %H:%M")


def score_document(
    query_tokens: frozenset[str],
    document: Document,
    *,
    now: datetime,
    recency_window: timedelta,
    recency_bonus: float,
) -> float:
    overlap = len(query_tokens & document.tokens)
    bonus = recency_bonus if (now - document.created_at) <= recency_window else 0.0
    return overlap + bonus


def rank_documents(
    snapshot: KnowledgeSnapshot,
    query: str,
    *,
    k: int,
    min_score: float,
    recency_window: timedelta,
    recency_bonus: float,
    now: datetime | None = None,
) -> list[ScoredCandidate]:
    """
    Score every document against the query and return the top k.

    Deterministic for a fixed snapshot and `now`: the sort is stable, so ties
    keep snapshot order (newest first).
    """
    if snapshot.is_empty or int(k) <= 0:
        return []
    query_tokens = frozenset(tokenize(query))
    if not query_tokens:
        return []

    now = now or datetime.now(timezone.utc)
    candidates: list[ScoredCandidate] = []
    for doc in snapshot.documents:
        score = score_document(
            query_tokens,
            doc,
            now=now,
            recency_window=recency_window,
            recency_bonus=recency_bonus,
        )
        if score < min_score:
            continue
        candidates.append(ScoredCandidate(document=doc, score=score))

    candidates.sort(key=lambda c: c.score, reverse=True)
    return candidates[: int(k)]


def format_snippet(
    document: Document,
    *,
    char_limit: int,
    format_timestamp: Callable[[datetime], str] = default_timestamp_format,
) -> str:
    header = f"[#{document.channel_name}] {format_timestamp(document.created_at)}{SNIPPET_SEPARATOR}"
    body = " ".join(document.content.split())
    limit = max(0, int(char_limit))
    room = limit - len(header)
    # No line at all when no body text fits beside the header.
    if room <= len(ELLIPSIS) and len(body) > max(0, room):
        return ""
    if len(body) > room:
        body = body[: room - len(ELLIPSIS)].rstrip() + ELLIPSIS
    return header + body


def retrieve(
    snapshot: KnowledgeSnapshot,
    query: str,
    *,
    k: int,
    min_score: float,
    snippet_char_limit: int,
    total_char_limit: int,
    recency_window: timedelta = timedelta(days=DEFAULT_KB_RECENCY_DAYS),
    recency_bonus: float = DEFAULT_KB_RECENCY_BONUS,
    format_timestamp: Callable[[datetime], str] = default_timestamp_format,
    now: datetime | None = None,
) -> list[str]:
    """
    Return formatted snippets for the best-matching documents.

    Empty when nothing clears min_score; callers treat that as "no grounding".
    Snippets are packed greedily: packing stops at the first line that would
    overflow total_char_limit. A document whose header leaves no room for
    its text is skipped.
    """
    ranked = rank_documents(
        snapshot,
        query,
        k=k,
        min_score=min_score,
        recency_window=recency_window,
        recency_bonus=recency_bonus,
        now=now,
    )
    if not ranked:
        return []

    total_limit = max(0, int(total_char_limit))
    line_limit = min(max(0, int(snippet_char_limit)), total_limit)

    out: list[str] = []
    total = 0
    for candidate in ranked:
        line = format_snippet(candidate.document, char_limit=line_limit, format_timestamp=format_timestamp)
        if not line:
            continue
        if total + len(line) > total_limit:
            break
        out.append(line)
        total += len(line)
    return out


def retrieve_with_settings(
    snapshot: KnowledgeSnapshot,
    query: str,
    settings: RetrievalSettings,
    *,
    format_timestamp: Callable[[datetime], str] = default_timestamp_format,
    now: datetime | None = None,
) -> list[str]:
    return retrieve(
        snapshot,
        query,
        k=settings.max_snippets,
        min_score=settings.min_score,
        snippet_char_limit=settings.snippet_char_limit,
        total_char_limit=settings.total_char_limit,
        recency_window=settings.recency_window,
        recency_bonus=settings.recency_bonus,
        format_timestamp=format_timestamp,
        now=now,
    )


def format_knowledge_block(snippets: list[str]) -> str:
    if not snippets:
        return ""
    return f"\n\n{NOTES_MARKER}\n- " + "\n- ".join(snippets)
