from __future__ import annotations

import unittest
from datetime import datetime, timedelta, timezone

from retrieval.knowledge_index import KnowledgeSnapshot
from retrieval.knowledge_index import make_document
from retrieval.knowledge_index import sort_newest_first
from retrieval.service import RetrievalSettings
from retrieval.service import format_knowledge_block
from retrieval.service import format_snippet
from retrieval.service import rank_documents
from retrieval.service import retrieve
from retrieval.service import retrieve_with_settings

NOW = datetime(2026, 3, 20, 12, 0, tzinfo=timezone.utc)
WINDOW = timedelta(days=14)


def _doc(message_id: int, content: str, *, days_ago: float, channel: str = "announcements"):
    return make_document(
        message_id=message_id,
        channel_id=1,
        channel_name=channel,
        author="mod",
        content=content,
        created_at=NOW - timedelta(days=days_ago),
    )


def _snapshot(*docs) -> KnowledgeSnapshot:
    return KnowledgeSnapshot(documents=sort_newest_first(docs), version=1, built_at=NOW)


class RankingTests(unittest.TestCase):
    def setUp(self):
        self.snapshot = _snapshot(
            _doc(1, "The mint date is Friday, mint opens at noon", days_ago=30),
            _doc(2, "Mint opens right after the allowlist closes", days_ago=40),
            _doc(3, "When the mint opens we will post the link", days_ago=20),
            _doc(4, "Weather is lovely today", days_ago=1),
        )

    def test_mint_query_excludes_unrelated_documents(self):
        ranked = rank_documents(
            self.snapshot,
            "when does the mint open",
            k=5,
            min_score=2,
            recency_window=WINDOW,
            recency_bonus=0.5,
            now=NOW,
        )
        ids = [c.document.message_id for c in ranked]
        self.assertNotIn(4, ids)
        # doc 3 overlaps {when, the, mint}; docs 1 and 2 tie on {the, mint} and keep newest-first order
        self.assertEqual(ids, [3, 1, 2])
        self.assertEqual([c.score for c in ranked], [3, 2, 2])

    def test_empty_query_returns_nothing(self):
        for query in ("", "🎉🎉", "?!?!", "   "):
            self.assertEqual(
                retrieve(
                    self.snapshot,
                    query,
                    k=3,
                    min_score=0,
                    snippet_char_limit=150,
                    total_char_limit=400,
                    now=NOW,
                ),
                [],
            )

    def test_results_are_deterministic(self):
        kwargs = dict(k=3, min_score=1, snippet_char_limit=150, total_char_limit=400, now=NOW)
        first = retrieve(self.snapshot, "mint opens", **kwargs)
        for _ in range(5):
            self.assertEqual(retrieve(self.snapshot, "mint opens", **kwargs), first)

    def test_threshold_excludes_low_scores(self):
        ranked = rank_documents(
            self.snapshot,
            "weather mint",
            k=10,
            min_score=1.5,
            recency_window=WINDOW,
            recency_bonus=0.5,
            now=NOW,
        )
        self.assertTrue(all(c.score >= 1.5 for c in ranked))
        # weather doc: overlap 1 + recency 0.5 clears; old mint docs at 1.0 do not
        self.assertEqual([c.document.message_id for c in ranked], [4])

    def test_recency_bonus_is_a_step(self):
        snapshot = _snapshot(_doc(1, "mint", days_ago=13.9), _doc(2, "mint", days_ago=14.1))
        ranked = rank_documents(
            snapshot, "mint", k=2, min_score=0, recency_window=WINDOW, recency_bonus=0.5, now=NOW
        )
        self.assertEqual([c.score for c in ranked], [1.5, 1.0])

    def test_extra_overlap_never_lowers_score(self):
        base = _snapshot(_doc(1, "mint opens friday", days_ago=2))
        plain = rank_documents(base, "mint", k=1, min_score=0, recency_window=WINDOW, recency_bonus=0.5, now=NOW)
        more = rank_documents(
            base, "mint opens", k=1, min_score=0, recency_window=WINDOW, recency_bonus=0.5, now=NOW
        )
        self.assertGreaterEqual(more[0].score, plain[0].score)

    def test_top_k_limits_results(self):
        ranked = rank_documents(
            self.snapshot, "mint", k=2, min_score=1, recency_window=WINDOW, recency_bonus=0.5, now=NOW
        )
        self.assertEqual(len(ranked), 2)


class PackingTests(unittest.TestCase):
    def test_snippet_header_and_truncation(self):
        doc = _doc(1, "mint   opens\nat noon " + "x" * 200, days_ago=1, channel="faq")
        line = format_snippet(doc, char_limit=60, format_timestamp=lambda dt: "19/03/2026 12:00")
        self.assertTrue(line.startswith("[#faq] 19/03/2026 12:00 — mint opens at noon"))
        self.assertEqual(len(line), 60)
        self.assertTrue(line.endswith("…"))

    def test_header_too_long_for_limit_gives_no_line(self):
        doc = _doc(1, "mint opens at noon", days_ago=1, channel="faq")
        fmt = lambda dt: "19/03/2026 12:00"
        self.assertEqual(format_snippet(doc, char_limit=20, format_timestamp=fmt), "")
        # header "[#faq] 19/03/2026 12:00 — " is 26 chars; one char of room only fits the ellipsis
        self.assertEqual(format_snippet(doc, char_limit=27, format_timestamp=fmt), "")
        self.assertEqual(format_snippet(doc, char_limit=28, format_timestamp=fmt), "[#faq] 19/03/2026 12:00 — m…")

    def test_document_with_oversized_header_is_skipped_not_fatal(self):
        snapshot = _snapshot(
            _doc(1, "mint opens friday", days_ago=1, channel="a-very-long-channel-name-for-announcements"),
            _doc(2, "mint opens friday", days_ago=2, channel="faq"),
        )
        out = retrieve(
            snapshot,
            "mint opens",
            k=2,
            min_score=1,
            snippet_char_limit=50,
            total_char_limit=400,
            format_timestamp=lambda dt: "19/03/2026 12:00",
            now=NOW,
        )
        self.assertEqual(out, ["[#faq] 19/03/2026 12:00 — mint opens friday"])

    def test_single_long_document_is_truncated_and_alone(self):
        snapshot = _snapshot(
            _doc(1, "mint " * 200, days_ago=1),
            _doc(2, "mint opens", days_ago=2),
        )
        out = retrieve(
            snapshot,
            "mint",
            k=2,
            min_score=1,
            snippet_char_limit=500,
            total_char_limit=120,
            now=NOW,
        )
        self.assertEqual(len(out), 1)
        self.assertLessEqual(len(out[0]), 120)

    def test_total_budget_is_respected(self):
        docs = [_doc(i, f"mint update number {i} " + "y" * 80, days_ago=i) for i in range(1, 8)]
        snapshot = _snapshot(*docs)
        for total in (50, 150, 200, 400):
            out = retrieve(snapshot, "mint update", k=7, min_score=1, snippet_char_limit=150, total_char_limit=total, now=NOW)
            self.assertLessEqual(sum(len(s) for s in out), total)
            self.assertTrue(all(len(s) <= 150 for s in out))

    def test_settings_wrapper_matches_explicit_call(self):
        snapshot = _snapshot(_doc(1, "mint opens friday", days_ago=1), _doc(2, "mint closes", days_ago=3))
        settings = RetrievalSettings(max_snippets=2, min_score=1, snippet_char_limit=100, total_char_limit=300)
        self.assertEqual(
            retrieve_with_settings(snapshot, "mint", settings, now=NOW),
            retrieve(snapshot, "mint", k=2, min_score=1, snippet_char_limit=100, total_char_limit=300, now=NOW),
        )

    def test_knowledge_block(self):
        self.assertEqual(format_knowledge_block([]), "")
        self.assertEqual(format_knowledge_block(["a", "b"]), "\n\nKnowledge:\n- a\n- b")


if __name__ == "__main__":
    unittest.main()
