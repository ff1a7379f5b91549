"""Translate SearchFilter into Qdrant filter conditions."""
from __future__ import annotations

from qdrant_client import models

from research_index.models import SearchFilter

SCALAR_FILTER_FIELDS = ("source", "document_type", "domain_id", "topic_id")
TAGS_FIELD = "tags"
TEXT_FIELD = "text"


def build_filter(search_filter: SearchFilter | None) -> models.Filter | None:
    """Build a Qdrant filter; ``None`` means no filtering.

    Every populated field becomes one equality condition. Each tag is a
    separate condition on ``tags``, so several tags select chunks carrying all
    of them. All conditions are combined in ``must``.
    """
    if search_filter is None:
        return None

    conditions: list[models.Condition] = []
    for field_name in SCALAR_FILTER_FIELDS:
        value = getattr(search_filter, field_name)
        if value:
            conditions.append(
                models.FieldCondition(key=field_name, match=models.MatchValue(value=value))
            )
    for tag in search_filter.tags:
        conditions.append(
            models.FieldCondition(key=TAGS_FIELD, match=models.MatchValue(value=tag))
        )

    if not conditions:
        return None
    return models.Filter(must=conditions)


def keyword_filter(query: str, native_filter: models.Filter | None = None) -> models.Filter:
    """Full-text match on ``text`` combined with ``native_filter``'s conditions."""
    conditions: list[models.Condition] = [
        models.FieldCondition(key=TEXT_FIELD, match=models.MatchText(text=query))
    ]
    if native_filter is not None and native_filter.must:
        must = native_filter.must
        conditions.extend(must if isinstance(must, list) else [must])
    return models.Filter(must=conditions)
