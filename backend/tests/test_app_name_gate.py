"""App-name gate tests — name normalization, whole-word matching, store-review bypass."""

import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest

from signal_verdict.schemas.signal_schema import Signal
from signal_verdict.services.app_name_gate import (
    InvalidSubjectNameError,
    apply_app_name_gate,
    apply_app_name_gate_multiple,
    build_name_regex,
    extract_core_app_name,
)


def _signal(title="", body="", source="reddit", community="productivity"):
    return Signal(source=source, community=community, title=title, body=body)


class TestCoreName:
    def test_colon_subtitle_dropped(self):
        assert extract_core_app_name("Loom: Screen Recorder") == "loom"

    def test_dash_subtitle_dropped(self):
        assert extract_core_app_name("Notion - Notes & Docs") == "notion"

    def test_em_dash_subtitle_dropped(self):
        assert extract_core_app_name("Calm — Sleep & Meditation") == "calm"

    def test_plain_name_lowercased(self):
        assert extract_core_app_name("  Todoist ") == "todoist"

    def test_regex_is_whole_word(self):
        pattern = build_name_regex("loom")
        assert pattern.search("I love LOOM for demos")
        assert not pattern.search("Bloom is a different app")

    def test_regex_accepts_possessive(self):
        assert build_name_regex("loom").search("loom's pricing page")

    def test_regex_escapes_metacharacters(self):
        pattern = build_name_regex("tasks.app")
        assert pattern.search("Tasks.app keeps syncing")
        assert not pattern.search("tasksXapp keeps syncing")

    def test_trailing_punctuation_needs_word_character_after(self):
        pattern = build_name_regex("c++")
        assert not pattern.search("C++ is great")
        assert pattern.search("c++11 is great")


class TestApplyGate:
    def test_whole_word_match_passes_substring_does_not(self):
        items = [
            _signal(title="Loom keeps crashing"),
            _signal(body="Bloom is my favourite"),
            _signal(body="screen recorders are all bad"),
        ]

        result = apply_app_name_gate(items, "Loom: Screen Recorder")

        assert [s.title for s in result.passed] == ["Loom keeps crashing"]
        assert len(result.filtered) == 2
        assert result.stats.before == 3
        assert result.stats.after == 1
        assert result.stats.removed == 2
        assert result.stats.core_name == "loom"

    def test_store_reviews_always_pass(self):
        items = [
            _signal(body="crashes on every launch", source="app_store"),
            _signal(body="too expensive", source="google_play"),
            _signal(body="no mention here", source="hacker_news"),
        ]

        result = apply_app_name_gate(items, "Loom")

        assert len(result.passed) == 2
        assert all(s.source in ("app_store", "google_play") for s in result.passed)

    def test_store_listing_filed_as_community_passes(self):
        item = {"source": "scraper", "community": "google_play", "title": None, "body": "meh"}
        result = apply_app_name_gate([item], "Loom")
        assert result.passed == [item]

    def test_plain_dicts_supported(self):
        items = [{"source": "reddit", "title": "loom pricing", "body": ""}]
        assert len(apply_app_name_gate(items, "Loom").passed) == 1

    def test_input_not_mutated(self):
        items = [_signal(title="Loom"), _signal(title="nothing")]
        snapshot = list(items)
        apply_app_name_gate(items, "Loom")
        assert items == snapshot

    def test_deterministic(self):
        items = [_signal(title="Loom"), _signal(title="other"), _signal(body="loom again")]
        first = apply_app_name_gate(items, "Loom")
        second = apply_app_name_gate(items, "Loom")
        assert first.passed == second.passed
        assert first.filtered == second.filtered

    @pytest.mark.parametrize("name", ["", "   ", ": Pro", "- Lite"])
    def test_empty_core_name_rejected(self, name):
        with pytest.raises(InvalidSubjectNameError):
            apply_app_name_gate([_signal(title="anything")], name)


class TestApplyGateMultiple:
    def test_groups_share_pattern_and_sum_removed(self):
        groups = {
            "posts": [_signal(title="Loom is slow"), _signal(title="unrelated")],
            "comments": [_signal(body="bloom"), _signal(body="loom works")],
        }

        result = apply_app_name_gate_multiple(groups, "Loom")

        assert result.core_name == "loom"
        assert [r.name for r in result.results] == ["posts", "comments"]
        assert result.results[0].result.stats.after == 1
        assert result.results[1].result.stats.after == 1
        assert result.total_removed == 2

    def test_empty_name_rejected(self):
        with pytest.raises(InvalidSubjectNameError):
            apply_app_name_gate_multiple({"posts": []}, "")
