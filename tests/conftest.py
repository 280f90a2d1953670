import json
import os
import time
from pathlib import Path
from typing import Callable

import pytest


@pytest.fixture()
def data_root(tmp_path: Path) -> Path:
    """An empty assistant data root."""
    root = tmp_path / "dot-assistant"
    root.mkdir()
    return root


@pytest.fixture()
def make_file(data_root: Path) -> Callable[..., Path]:
    """Create a file under the data root, optionally back-dated by `age_days`."""

    def _make(rel_path: str, content: str = "x", age_days: float | None = None) -> Path:
        path = data_root / rel_path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        if age_days is not None:
            ts = time.time() - age_days * 86400
            os.utime(path, (ts, ts))
        return path

    return _make


@pytest.fixture()
def write_log(tmp_path: Path) -> Callable[..., Path]:
    """Write records as newline-delimited JSON, one record per line."""

    def _write(name: str, records: list[object], trailing_newline: bool = False) -> Path:
        path = tmp_path / name
        text = "\n".join(json.dumps(r) for r in records)
        if trailing_newline:
            text += "\n"
        path.write_text(text, encoding="utf-8")
        return path

    return _write
