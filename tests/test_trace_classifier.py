from pathlib import Path

import pytest

from transcript_janitor.options import Exclusion
from transcript_janitor.trace_engine import (
    TRACE_CATEGORIES,
    ExclusionMatcher,
    TraceClassifier,
    glob_to_regex,
)


@pytest.fixture()
def classifier(tmp_path: Path) -> TraceClassifier:
    return TraceClassifier(tmp_path)


class TestTraceClassifier:
    @pytest.mark.parametrize(
        ("rel_path", "expected"),
        [
            ("projects/p/session.jsonl", "conversations"),
            ("projects/p/subagents/agent-42.jsonl", "subagents"),
            ("projects/p/memory/MEMORY.md", "memory"),
            ("projects/p/sessions-index.json", "sessions-index"),
            ("debug/abc-123.txt", "debug-logs"),
            ("file-history/session-1/file@v1", "file-history"),
            ("shell-snapshots/snapshot-zsh-123.sh", "shell-snapshots"),
            ("session-env/abc/env.json", "session-env"),
            ("history.jsonl", "history"),
            ("stats-cache.json", "stats"),
            ("todos/session.json", "todos"),
            ("plans/plan.md", "plans"),
            ("statsig/config.json", "telemetry"),
            ("security_warnings_state_abc.json", "security-state"),
            ("ide/1234.lock", "ide-locks"),
            ("agents/reviewer.md", "agents"),
            ("plugins/installed_plugins.json", "plugins"),
        ],
    )
    def test_categories(self, classifier: TraceClassifier, rel_path: str, expected: str) -> None:
        rule = classifier.classify_relative(rel_path)
        assert rule is not None
        assert rule.name == expected

    @pytest.mark.parametrize(
        "rel_path",
        ["settings.json", "CLAUDE.md", "projects/p/notes.txt", "random/file.txt", "debug", "nested/history.jsonl"],
    )
    def test_unmatched(self, classifier: TraceClassifier, rel_path: str) -> None:
        assert classifier.classify_relative(rel_path) is None

    def test_conversation_is_critical(self, classifier: TraceClassifier, tmp_path: Path) -> None:
        path = tmp_path / "projects" / "p" / "session.jsonl"
        rule = classifier.classify(path)
        assert rule.name == "conversations"
        assert rule.sensitivity == "critical"

    def test_prefix_must_be_a_directory(self, classifier: TraceClassifier) -> None:
        assert classifier.classify_relative("debugger/x.txt") is None

    def test_first_matching_rule_wins(self, classifier: TraceClassifier) -> None:
        rel_path = "projects/p/memory/log.jsonl"
        matching = [rule.name for rule in TRACE_CATEGORIES if rule.matches(rel_path)]
        assert len(matching) > 1
        assert classifier.classify_relative(rel_path).name == matching[0]

    def test_rule_names_are_unique(self) -> None:
        names = [rule.name for rule in TRACE_CATEGORIES]
        assert len(names) == len(set(names))


class TestGlobToRegex:
    def test_star_and_question_mark(self) -> None:
        assert glob_to_regex("debug/keep*").search("debug/keep-me.txt")
        assert glob_to_regex("todo?.json").search("todos/todo1.json")

    def test_other_characters_are_literal(self) -> None:
        assert not glob_to_regex("a.b").search("axb")

    def test_unanchored(self) -> None:
        assert glob_to_regex("keep*").search("debug/keep.txt")


class TestExclusionMatcher:
    def test_no_exclusions(self, tmp_path: Path) -> None:
        matcher = ExclusionMatcher(tmp_path, [])
        assert matcher.match(tmp_path / "debug" / "x.txt", "debug-logs") is None

    def test_category(self, tmp_path: Path) -> None:
        exc = Exclusion(type="category", value="conversations")
        matcher = ExclusionMatcher(tmp_path, [exc])
        assert matcher.match(tmp_path / "projects" / "p" / "s.jsonl", "conversations") == exc
        assert matcher.match(tmp_path / "debug" / "x.txt", "debug-logs") is None

    def test_project_substring(self, tmp_path: Path) -> None:
        exc = Exclusion(type="project", value="my-app")
        matcher = ExclusionMatcher(tmp_path, [exc])
        assert matcher.match(tmp_path / "projects" / "-home-me-my-app" / "s.jsonl", "conversations") == exc
        assert matcher.match(tmp_path / "projects" / "other" / "s.jsonl", "conversations") is None

    def test_path_glob(self, tmp_path: Path) -> None:
        exc = Exclusion(type="path", value="debug/keep*")
        matcher = ExclusionMatcher(tmp_path, [exc])
        assert matcher.match(tmp_path / "debug" / "keep-this.txt", "debug-logs") == exc
        assert matcher.match(tmp_path / "debug" / "drop.txt", "debug-logs") is None

    def test_first_match_is_attributed(self, tmp_path: Path) -> None:
        first = Exclusion(id="one", type="path", value="debug/*")
        second = Exclusion(id="two", type="category", value="debug-logs")
        matcher = ExclusionMatcher(tmp_path, [first, second])
        assert matcher.match(tmp_path / "debug" / "x.txt", "debug-logs").id == "one"
