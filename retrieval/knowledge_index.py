from __future__ import annotations

import asyncio
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterable, Protocol

from config.defaults import BOT_AUTHOR_SENTINEL
from config.defaults import DEFAULT_KNOWLEDGE_MAX_DOC_CHARS
from config.defaults import KNOWLEDGE_FETCH_BATCH
from retrieval.tokenize import tokenize

MENTION_PATTERN = re.compile(r"<@[!&]?[0-9]+>")


class SourceUnavailable(Exception):
    """A knowledge source could not be read (permissions or fetch failure)."""


class ChannelSource(Protocol):
    def can_read(self, channel: Any) -> bool: ...

    async def fetch_batch(self, channel: Any, before_id: int | None, limit: int) -> list[Any]: ...


@dataclass(frozen=True, slots=True)
class Document:
    message_id: int
    channel_id: int
    channel_name: str
    author: str
    content: str
    created_at: datetime
    tokens: frozenset[str] = field(default=frozenset(), compare=False, repr=False)


@dataclass(frozen=True, slots=True)
class KnowledgeSnapshot:
    documents: tuple[Document, ...] = ()
    version: int = 0
    built_at: datetime | None = None

    def __len__(self) -> int:
        return len(self.documents)

    @property
    def is_empty(self) -> bool:
        return not self.documents


def _aware_utc(dt: datetime | None) -> datetime:
    if dt is None:
        return datetime.fromtimestamp(0, tz=timezone.utc)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def make_document(
    *,
    message_id: int,
    channel_id: int,
    channel_name: str,
    author: str,
    content: str,
    created_at: datetime | None,
    is_bot: bool = False,
    max_chars: int = DEFAULT_KNOWLEDGE_MAX_DOC_CHARS,
) -> Document | None:
    """Build an indexable document, or None when the content is blank."""
    clean = MENTION_PATTERN.sub("@user", content or "").strip()
    if not clean:
        return None
    clean = clean[: max(1, int(max_chars))]
    return Document(
        message_id=int(message_id),
        channel_id=int(channel_id),
        channel_name=str(channel_name or "unknown-channel"),
        author=BOT_AUTHOR_SENTINEL if is_bot else (str(author or "").strip() or "unknown-author"),
        content=clean,
        created_at=_aware_utc(created_at),
        tokens=frozenset(tokenize(clean)),
    )


def document_from_message(message: Any, channel: Any, *, max_chars: int) -> Document | None:
    author = getattr(message, "author", None)
    name = getattr(author, "display_name", None) or getattr(author, "name", None) or str(author or "")
    return make_document(
        message_id=int(message.id),
        channel_id=int(getattr(channel, "id", 0) or 0),
        channel_name=getattr(channel, "name", None) or str(channel),
        author=name,
        content=getattr(message, "content", "") or "",
        created_at=getattr(message, "created_at", None),
        is_bot=bool(getattr(author, "bot", False)),
        max_chars=max_chars,
    )


def sort_newest_first(documents: Iterable[Document]) -> tuple[Document, ...]:
    return tuple(sorted(documents, key=lambda d: d.created_at, reverse=True))


class KnowledgeIndex:
    """
    In-memory knowledge base built from channel history.

    Each build produces a new immutable snapshot which replaces the previous one
    in a single assignment, so readers bound to a snapshot never see a partial
    rebuild. Only one build runs at a time; overlapping triggers are skipped.
    """

    def __init__(
        self,
        source: ChannelSource,
        *,
        max_document_chars: int = DEFAULT_KNOWLEDGE_MAX_DOC_CHARS,
        batch_size: int = KNOWLEDGE_FETCH_BATCH,
    ) -> None:
        self.source = source
        self.max_document_chars = max(1, int(max_document_chars))
        self.batch_size = max(1, int(batch_size))
        self._snapshot = KnowledgeSnapshot()
        self._build_lock = asyncio.Lock()

    def current_snapshot(self) -> KnowledgeSnapshot:
        return self._snapshot

    @property
    def building(self) -> bool:
        return self._build_lock.locked()

    async def build(
        self,
        sources: list[Any],
        *,
        per_source_cap: int,
        global_budget: int,
    ) -> KnowledgeSnapshot:
        if not sources:
            print("[KB] No knowledge channels configured; skipping build.")
            return self._snapshot

        if self._build_lock.locked():
            print("[KB] Build already in progress; ignoring trigger.")
            return self._snapshot

        async with self._build_lock:
            collected: list[Document] = []
            remaining = max(0, int(global_budget))
            cap = max(0, int(per_source_cap))
            print(f"[KB] Build starting sources={len(sources)} per_source_cap={cap} global_budget={remaining}")

            for channel in sources:
                label = f"{getattr(channel, 'id', '?')} (#{getattr(channel, 'name', 'unknown')})"
                if remaining <= 0:
                    print(f"[KB] Global budget exhausted; skipping channel {label}")
                    continue

                try:
                    readable = bool(self.source.can_read(channel))
                except Exception as e:
                    print(f"[KB] Permission check failed for channel {label}: {e}")
                    readable = False
                if not readable:
                    print(f"[KB] Skipping channel {label}: no read access")
                    continue

                limit = min(cap, remaining)
                docs, fetched, skipped = await self._collect_channel(channel, limit=limit, label=label)
                collected.extend(docs)
                remaining -= len(docs)
                print(
                    f"[KB] Channel {label} fetched={fetched} indexed={len(docs)} "
                    f"skipped_empty={skipped} budget_left={remaining}"
                )

            snapshot = KnowledgeSnapshot(
                documents=sort_newest_first(collected),
                version=self._snapshot.version + 1,
                built_at=datetime.now(timezone.utc),
            )
            self._snapshot = snapshot
            print(f"[KB] Build done version={snapshot.version} documents={len(snapshot)}")
            return snapshot

    async def _collect_channel(self, channel: Any, *, limit: int, label: str) -> tuple[list[Document], int, int]:
        docs: list[Document] = []
        fetched = 0
        skipped = 0
        before_id: int | None = None

        while len(docs) < limit:
            try:
                batch = await self._fetch(channel, before_id)
            except SourceUnavailable as e:
                print(f"[KB] Channel {label} unavailable after {fetched} messages: {e}")
                break
            if not batch:
                break

            fetched += len(batch)
            for msg in batch:
                doc = document_from_message(msg, channel, max_chars=self.max_document_chars)
                if doc is None:
                    skipped += 1
                    continue
                docs.append(doc)
                if len(docs) >= limit:
                    break
            before_id = int(batch[-1].id)

        return docs, fetched, skipped

    async def _fetch(self, channel: Any, before_id: int | None) -> list[Any]:
        try:
            return list(await self.source.fetch_batch(channel, before_id, self.batch_size))
        except SourceUnavailable:
            raise
        except Exception as e:
            raise SourceUnavailable(str(e)) from e
