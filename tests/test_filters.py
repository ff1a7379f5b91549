"""Tests for the Qdrant filter builder."""
from __future__ import annotations

from qdrant_client import models

from research_index.models import SearchFilter
from research_index.storage import build_filter, keyword_filter


def _pairs(native_filter: models.Filter) -> list[tuple[str, object]]:
    return [(condition.key, condition.match.value) for condition in native_filter.must]


class TestBuildFilter:
    """Tests for build_filter."""

    def test_none_means_no_filter(self):
        assert build_filter(None) is None

    def test_empty_filter_means_no_filter(self):
        assert build_filter(SearchFilter()) is None
        assert build_filter(SearchFilter(source="", tags=[])) is None

    def test_scalar_fields_become_equality_conditions(self):
        native = build_filter(
            SearchFilter(source="arxiv", document_type="paper", domain_id="d1", topic_id="t1")
        )

        assert _pairs(native) == [
            ("source", "arxiv"),
            ("document_type", "paper"),
            ("domain_id", "d1"),
            ("topic_id", "t1"),
        ]

    def test_each_tag_is_its_own_condition(self):
        """Several tags select chunks that carry all of them."""
        native = build_filter(SearchFilter(tags=["ml", "nlp"]))

        assert _pairs(native) == [("tags", "ml"), ("tags", "nlp")]
        assert native.should is None

    def test_building_twice_gives_equal_filters(self):
        search_filter = SearchFilter(source="arxiv", tags=["ml"])

        assert build_filter(search_filter) == build_filter(search_filter)


class TestKeywordFilter:
    """Tests for keyword_filter."""

    def test_text_match_only(self):
        native = keyword_filter("vector databases")

        assert len(native.must) == 1
        condition = native.must[0]
        assert condition.key == "text"
        assert isinstance(condition.match, models.MatchText)
        assert condition.match.text == "vector databases"

    def test_text_match_first_then_metadata(self):
        base = build_filter(SearchFilter(source="arxiv", tags=["ml"]))

        native = keyword_filter("transformers", base)

        assert native.must[0].match.text == "transformers"
        assert native.must[1:] == base.must

    def test_base_filter_is_not_mutated(self):
        base = build_filter(SearchFilter(source="arxiv"))

        keyword_filter("transformers", base)

        assert len(base.must) == 1
