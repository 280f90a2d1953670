from pathlib import Path

from transcript_janitor.options import CleanOptions, Exclusion, PreviewOptions
from transcript_janitor.trace_engine import clean_traces, preview_traces


def _populate(make_file) -> dict[str, Path]:
    return {
        "conversation": make_file("projects/p/session.jsonl", '{"type":"user"}'),
        "debug": make_file("debug/log.txt", "debug info"),
        "todo": make_file("todos/task.json", "[]"),
        "agent": make_file("agents/reviewer.md", "# agent"),
        "ide": make_file("ide/1234.lock", "{}"),
    }


class TestCleanDryRun:
    def test_dry_run_is_default(self, data_root: Path, make_file) -> None:
        files = _populate(make_file)

        result = clean_traces(data_root)

        assert result.dry_run is True
        assert len(result.deleted) > 0
        assert result.freed > 0
        assert all(p.exists() for p in files.values())

    def test_dry_run_matches_execute(self, data_root: Path, make_file) -> None:
        _populate(make_file)
        make_file("debug/older.txt", age_days=30)

        planned = clean_traces(data_root, CleanOptions(days=7))
        executed = clean_traces(data_root, CleanOptions(days=7, dry_run=False))

        assert sorted(planned.deleted) == sorted(executed.deleted)
        assert planned.freed == executed.freed
        assert planned.categories_affected == executed.categories_affected
        assert all(not Path(p).exists() for p in executed.deleted)


class TestCleanExecute:
    def test_deletes_files(self, data_root: Path, make_file) -> None:
        files = _populate(make_file)

        result = clean_traces(data_root, CleanOptions(dry_run=False))

        assert result.errors == []
        assert not files["conversation"].exists()
        assert not files["debug"].exists()
        assert not files["todo"].exists()

    def test_skips_agents_and_ide_locks_by_default(self, data_root: Path, make_file) -> None:
        files = _populate(make_file)

        result = clean_traces(data_root, CleanOptions(dry_run=False))

        assert files["agent"].exists()
        assert files["ide"].exists()
        assert "agents" not in result.categories_affected
        assert "ide-locks" not in result.categories_affected

    def test_plugins_are_not_protected_by_default(self, data_root: Path, make_file) -> None:
        plugin = make_file("plugins/installed_plugins.json", "{}")

        result = clean_traces(data_root, CleanOptions(dry_run=False))

        assert result.deleted == [str(plugin)]
        assert result.categories_affected == ["plugins"]
        assert not plugin.exists()

    def test_naming_a_protected_category_overrides_default(self, data_root: Path, make_file) -> None:
        files = _populate(make_file)

        result = clean_traces(data_root, CleanOptions(categories=["agents"], dry_run=False))

        assert not files["agent"].exists()
        assert result.categories_affected == ["agents"]

    def test_filters_by_category(self, data_root: Path, make_file) -> None:
        files = _populate(make_file)

        result = clean_traces(data_root, CleanOptions(categories=["debug-logs"], dry_run=False))

        assert result.categories_affected == ["debug-logs"]
        assert not files["debug"].exists()
        assert files["todo"].exists()

    def test_filters_by_age(self, data_root: Path, make_file) -> None:
        old = make_file("debug/old.txt", age_days=10)
        new = make_file("debug/new.txt")

        clean_traces(data_root, CleanOptions(days=7, dry_run=False))

        assert not old.exists()
        assert new.exists()

    def test_project_filter(self, data_root: Path, make_file) -> None:
        keep = make_file("projects/proj-b/s.jsonl")
        drop = make_file("projects/proj-a/s.jsonl")

        clean_traces(data_root, CleanOptions(project="proj-a", categories=["conversations"], dry_run=False))

        assert not drop.exists()
        assert keep.exists()

    def test_preserves_settings(self, data_root: Path, make_file) -> None:
        _populate(make_file)
        settings = make_file("settings.json", "{}")

        clean_traces(data_root, CleanOptions(dry_run=False))

        assert settings.exists()

    def test_category_exclusion(self, data_root: Path, make_file) -> None:
        files = _populate(make_file)
        second = make_file("projects/q/other.jsonl", "{}")
        exclusions = [Exclusion(type="category", value="conversations")]

        result = clean_traces(data_root, CleanOptions(dry_run=False, exclusions=exclusions))

        assert files["conversation"].exists()
        assert second.exists()
        assert not files["debug"].exists()
        assert not files["todo"].exists()
        assert "conversations" not in result.categories_affected

    def test_category_exclusion_beats_every_other_filter(self, data_root: Path, make_file) -> None:
        old = make_file("projects/p/old.jsonl", age_days=90)
        exclusions = [Exclusion(type="category", value="conversations")]

        result = clean_traces(
            data_root,
            CleanOptions(categories=["conversations"], days=1, dry_run=False, exclusions=exclusions),
        )

        assert old.exists()
        assert result.deleted == []
        assert result.categories_affected == []

    def test_conversations_exclusion_does_not_cover_subagents(self, data_root: Path, make_file) -> None:
        conv = make_file("projects/p/session.jsonl")
        sub = make_file("projects/p/subagents/agent-1.jsonl")
        exclusions = [Exclusion(type="category", value="conversations")]

        result = clean_traces(data_root, CleanOptions(dry_run=False, exclusions=exclusions))

        assert conv.exists()
        assert not sub.exists()
        assert result.categories_affected == ["subagents"]

    def test_subagents_need_their_own_exclusion(self, data_root: Path, make_file) -> None:
        make_file("projects/p/session.jsonl")
        sub = make_file("projects/p/subagents/agent-1.jsonl")
        exclusions = [
            Exclusion(type="category", value="conversations"),
            Exclusion(type="category", value="subagents"),
        ]

        result = clean_traces(data_root, CleanOptions(dry_run=False, exclusions=exclusions))

        assert sub.exists()
        assert result.deleted == []

    def test_path_exclusion(self, data_root: Path, make_file) -> None:
        keep = make_file("debug/keep-me.txt")
        drop = make_file("debug/drop.txt")

        clean_traces(data_root, CleanOptions(dry_run=False, exclusions=[Exclusion(type="path", value="debug/keep*")]))

        assert keep.exists()
        assert not drop.exists()

    def test_delete_failure_does_not_stop_batch(self, data_root: Path, make_file, monkeypatch) -> None:
        bad = make_file("debug/a.txt")
        good = make_file("debug/b.txt")
        real_unlink = __import__("os").unlink

        def flaky_unlink(path, *args, **kwargs):
            if str(path) == str(bad):
                raise PermissionError("denied")
            return real_unlink(path, *args, **kwargs)

        monkeypatch.setattr("transcript_janitor.trace_engine.os.unlink", flaky_unlink)

        result = clean_traces(data_root, CleanOptions(dry_run=False))

        assert result.deleted == [str(good)]
        assert len(result.errors) == 1
        assert str(bad) in result.errors[0]
        assert result.categories_affected == ["debug-logs"]


class TestPreviewTraces:
    def test_clean_preview(self, data_root: Path, make_file) -> None:
        _populate(make_file)

        preview = preview_traces(data_root)

        assert preview.summary["total_files"] == 3
        assert preview.summary["critical_files"] == 1
        assert [c.name for c in preview.by_category] == ["conversations", "debug-logs", "todos"]
        assert any("critical" in w for w in preview.warnings)

    def test_wipe_preview_includes_protected_categories(self, data_root: Path, make_file) -> None:
        _populate(make_file)

        preview = preview_traces(data_root, PreviewOptions(operation="wipe"))

        assert preview.summary["total_files"] == 5
        assert any("SECURE WIPE" in w for w in preview.warnings)

    def test_impact_warning_and_samples(self, data_root: Path, make_file) -> None:
        _populate(make_file)

        preview = preview_traces(data_root)

        conv = next(c for c in preview.by_category if c.name == "conversations")
        assert "prompts" in conv.impact_warning
        assert conv.sample_paths[0].endswith("session.jsonl")

    def test_exclusion_attribution(self, data_root: Path, make_file) -> None:
        _populate(make_file)
        make_file("debug/second.txt", "12")
        exc = Exclusion(id="keep-debug", type="category", value="debug-logs")

        preview = preview_traces(data_root, PreviewOptions(exclusions=[exc]))

        assert preview.total_preserved == 2
        assert preview.preserved_by_exclusion[0].exclusion.id == "keep-debug"
        assert preview.preserved_by_exclusion[0].matched_files == 2
        assert preview.to_dict()["preserved"]["by_exclusion"][0]["matched_size"] == len("debug info") + 2

    def test_category_filter(self, data_root: Path, make_file) -> None:
        _populate(make_file)

        preview = preview_traces(data_root, PreviewOptions(categories=["debug-logs"]))

        assert [c.name for c in preview.by_category] == ["debug-logs"]
