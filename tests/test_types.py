"""Tests for record helpers, search types and storage filters."""

import pytest

from simple_memory.storage.types import MemoryFilter, StoreStats, TagCount
from simple_memory.types import (
    MemoryRecord,
    SearchLabel,
    SearchMode,
    SearchOutcome,
    derive_title,
    iso_from_ms,
    make_preview,
    normalize_tags,
)


def _record(**overrides) -> MemoryRecord:
    fields = {
        "id": 7,
        "title": "Deploy notes",
        "content": "Run migrations\nthen restart",
        "type": "decision",
        "project": "api",
        "created_at": 1735787045678,
        "created_iso": "2025-01-02T03:04:05.678Z",
        "tags": ["deploy", "ops"],
    }
    fields.update(overrides)
    return MemoryRecord(**fields)


class TestTagNormalization:
    def test_trims_lowercases_and_drops_empty(self):
        assert set(normalize_tags(["BUG", " Auth ", "", "  "])) == {"bug", "auth"}

    def test_case_variants_collapse(self):
        assert normalize_tags(["Auth", "AUTH", "auth"]) == ["auth"]

    def test_keeps_first_seen_order(self):
        assert normalize_tags(["b", "A", "c", "a"]) == ["b", "a", "c"]

    def test_none_and_empty(self):
        assert normalize_tags(None) == []
        assert normalize_tags([]) == []

    def test_non_string_entries_skipped(self):
        assert normalize_tags(["ok", 3, None]) == ["ok"]  # type: ignore[list-item]


class TestRecordHelpers:
    def test_derive_title_truncates_to_80(self):
        content = "x" * 200
        assert derive_title(content) == "x" * 80

    def test_derive_title_short_content(self):
        assert derive_title("short") == "short"

    def test_preview_truncates_and_flattens_newlines(self):
        preview = make_preview("line one\nline two\r\n" + "y" * 300)
        assert "\n" not in preview
        assert preview.startswith("line one line two")
        assert len(preview) <= 200

    def test_iso_from_ms_has_millis_and_z(self):
        assert iso_from_ms(1735787045678) == "2025-01-02T03:04:05.678Z"


class TestMemoryRecord:
    def test_to_dict_full_has_content(self):
        data = _record().to_dict(full=True)
        assert data["content"] == "Run migrations\nthen restart"
        assert "preview" not in data
        assert "updated_at" not in data

    def test_to_dict_preview(self):
        data = _record().to_dict(full=False)
        assert data["preview"] == "Run migrations then restart"
        assert "content" not in data

    def test_to_dict_includes_update_fields_when_set(self):
        data = _record(updated_at=1, updated_iso="1970-01-01T00:00:00.001Z").to_dict()
        assert data["updated_at"] == 1
        assert data["updated_iso"] == "1970-01-01T00:00:00.001Z"

    def test_render_layout(self):
        text = _record().render()
        lines = text.split("\n")
        assert lines[0] == "#7 | decision | api | 2025-01-02T03:04:05.678Z"
        assert lines[1] == "  Deploy notes [deploy, ops]"
        assert lines[2] == "  Run migrations then restart"

    def test_render_shows_update_time(self):
        text = _record(updated_at=2, updated_iso="2025-02-01T00:00:00.000Z").render()
        assert "(updated: 2025-02-01T00:00:00.000Z)" in text.split("\n")[0]


class TestSearchMode:
    @pytest.mark.parametrize(
        "value,expected",
        [
            ("auto", SearchMode.AUTO),
            ("KEYWORD", SearchMode.KEYWORD),
            ("Vector", SearchMode.VECTOR),
            ("fts", SearchMode.FTS),
            (None, SearchMode.AUTO),
            ("", SearchMode.AUTO),
            ("semantic-ish", SearchMode.AUTO),
        ],
    )
    def test_parse(self, value, expected):
        assert SearchMode.parse(value) is expected

    def test_runs_keyword(self):
        assert SearchMode.AUTO.runs_keyword
        assert SearchMode.FTS.runs_keyword
        assert not SearchMode.VECTOR.runs_keyword


class TestSearchOutcome:
    def test_header_for_recent(self):
        assert SearchOutcome(records=[], label=SearchLabel.RECENT).header == "Recent memories"

    def test_to_dict_adds_similarity(self):
        outcome = SearchOutcome(
            records=[_record()], label=SearchLabel.VECTOR, query="deploy", scores={7: 0.91234}
        )
        data = outcome.to_dict()
        assert data["label"] == "Vector"
        assert data["total"] == 1
        assert data["records"][0]["similarity"] == 0.9123
        assert "preview" in data["records"][0]


class TestMemoryFilter:
    def test_blank_values_mean_no_filter(self):
        f = MemoryFilter(project="  ", type="", tag=" ")
        assert f.project is None
        assert f.type is None
        assert f.tag is None

    def test_tag_is_normalized(self):
        assert MemoryFilter(tag=" BUG ").tag == "bug"

    def test_from_query_splits_terms(self):
        f = MemoryFilter.from_query("  refresh   token ", project="api")
        assert f.terms == ("refresh", "token")
        assert f.project == "api"

    def test_from_query_none(self):
        assert MemoryFilter.from_query(None).terms == ()


def test_store_stats_and_tag_count_serialize():
    stats = StoreStats(total_memories=2, embedding_dims={3: 2}, schema_version=3)
    data = stats.to_dict()
    assert data["total_memories"] == 2
    assert data["embedding_dims"] == {"3": 2}
    assert TagCount("bug", 4).to_dict() == {"tag": "bug", "count": 4}
