import json
from pathlib import Path

import pytest

from transcript_janitor import cli


def _big_image_record() -> dict:
    image = {"type": "image", "source": {"type": "base64", "media_type": "image/png", "data": "A" * 120_000}}
    return {"type": "user", "message": {"role": "user", "content": [image]}}


@pytest.fixture()
def run(tmp_path: Path, data_root: Path, capsys):
    log_file = tmp_path / "logs" / "actions.log"

    def _run(*argv: str) -> tuple[int, dict]:
        code = cli.main(["--root", str(data_root), "--log-file", str(log_file), *argv])
        captured = capsys.readouterr()
        payload = json.loads(captured.out if code == 0 else captured.err)
        return code, payload

    return _run


class TestCli:
    def test_scan_file(self, run, write_log) -> None:
        path = write_log("s.jsonl", [_big_image_record()])

        code, payload = run("scan", str(path))

        assert code == 0
        assert payload["status"] == "ok"
        assert payload["command"] == "scan"
        assert len(payload["data"]["issues"]) == 1

    def test_fix_directory_without_backup(self, run, write_log, tmp_path: Path) -> None:
        write_log("s.jsonl", [_big_image_record()])

        code, payload = run("fix", str(tmp_path), "--no-backup")

        assert code == 0
        assert payload["data"]["results"][0]["fixed"] is True
        assert payload["data"]["results"][0]["backup_path"] is None

    def test_scan_missing_file_is_an_error(self, run, tmp_path: Path) -> None:
        code, payload = run("scan", str(tmp_path / "missing.jsonl"))

        assert code == 1
        assert payload["status"] == "error"
        assert payload["command"] == "scan"

    def test_clean_defaults_to_dry_run(self, run, make_file) -> None:
        path = make_file("debug/log.txt")

        code, payload = run("clean")

        assert code == 0
        assert payload["data"]["dry_run"] is True
        assert payload["data"]["deleted"] == [str(path)]
        assert path.exists()

    def test_clean_execute_with_exclusions_file(self, run, make_file, tmp_path: Path) -> None:
        keep = make_file("projects/p/s.jsonl")
        drop = make_file("debug/log.txt")
        exclusions = tmp_path / "exclusions.json"
        exclusions.write_text(json.dumps([{"type": "category", "value": "conversations"}]))

        code, payload = run("clean", "--execute", "--exclusions", str(exclusions))

        assert code == 0
        assert keep.exists()
        assert not drop.exists()
        assert payload["data"]["categories_affected"] == ["debug-logs"]

    def test_bad_exclusions_file(self, run, tmp_path: Path) -> None:
        exclusions = tmp_path / "exclusions.json"
        exclusions.write_text(json.dumps([{"type": "nope", "value": "x"}]))

        code, payload = run("clean", "--exclusions", str(exclusions))

        assert code == 1
        assert payload["status"] == "error"

    def test_wipe_without_confirm(self, run, make_file) -> None:
        path = make_file("debug/log.txt")

        code, payload = run("wipe")

        assert code == 0
        assert payload["data"]["files_wiped"] == 0
        assert path.exists()

    def test_inventory_without_items(self, run, make_file) -> None:
        make_file("debug/log.txt")

        code, payload = run("inventory")

        assert code == 0
        assert payload["data"]["total_files"] == 1
        assert "items" not in payload["data"]["categories"][0]

    def test_preview_wipe(self, run, make_file) -> None:
        make_file("agents/a.md")

        code, payload = run("preview", "--operation", "wipe")

        assert code == 0
        assert payload["data"]["summary"]["total_files"] == 1

    def test_guard_hooks(self, run) -> None:
        code, payload = run("guard-hooks", "--mode", "minimal")

        assert code == 0
        assert payload["data"]["mode"] == "minimal"
        assert len(payload["data"]["hooks"]) == 1

    def test_unknown_subcommand_exits(self, run) -> None:
        with pytest.raises(SystemExit):
            run("frobnicate")
