"""Weighted linear fusion of vector and keyword hits."""
from __future__ import annotations

from collections.abc import Sequence

from research_index.models import HybridResult
from research_index.storage.vector_store import StoreHit


def keyword_rank_score(position: int, total: int) -> float:
    """Score for the keyword hit at 0-based ``position`` out of ``total``.

    The top hit scores 1.0 and each later hit 1/total less.
    """
    return (total - position) / total


def fuse(
    vector_hits: Sequence[StoreHit],
    keyword_hits: Sequence[StoreHit],
    limit: int,
    vector_weight: float,
    keyword_weight: float,
) -> list[HybridResult]:
    """Merge both hit lists by point id and rank by the weighted score.

    ``score = vector_score * vector_weight + keyword_score * keyword_weight``,
    where a point missing from one list scores 0 for that signal. Equal scores
    keep insertion order: vector hits first, then keyword-only hits. With
    ``keyword_weight == 0`` keyword-only hits are left out entirely.
    """
    results: dict[str, HybridResult] = {}

    for hit in vector_hits:
        if hit.id in results:
            continue
        results[hit.id] = HybridResult.from_payload(
            hit.id, hit.payload, vector_score=float(hit.score or 0.0)
        )

    total = len(keyword_hits)
    for position, hit in enumerate(keyword_hits):
        keyword_score = keyword_rank_score(position, total)
        existing = results.get(hit.id)
        if existing is not None:
            existing.keyword_score = keyword_score
        elif keyword_weight > 0:
            # At zero keyword weight only vector hits are ranked.
            results[hit.id] = HybridResult.from_payload(
                hit.id, hit.payload, keyword_score=keyword_score
            )

    for result in results.values():
        result.score = (
            result.vector_score * vector_weight + result.keyword_score * keyword_weight
        )

    ranked = sorted(results.values(), key=lambda result: result.score, reverse=True)
    return ranked[:limit]
