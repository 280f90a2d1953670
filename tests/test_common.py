import logging
from pathlib import Path

from transcript_janitor.common import (
    APP_NAME,
    SECONDS_PER_DAY,
    age_cutoff,
    human_bytes,
    relative_posix,
    setup_logger,
)


class TestHumanBytes:
    def test_units(self) -> None:
        assert human_bytes(0) == "0 B"
        assert human_bytes(512) == "512 B"
        assert human_bytes(1536) == "1.5 KB"
        assert human_bytes(5 * 1024 * 1024) == "5.0 MB"

    def test_negative_is_zero(self) -> None:
        assert human_bytes(-5) == "0 B"


class TestAgeCutoff:
    def test_disabled(self) -> None:
        assert age_cutoff(None) == 0.0
        assert age_cutoff(0) == 0.0

    def test_days(self) -> None:
        assert age_cutoff(2, now_ts=10 * SECONDS_PER_DAY) == 8 * SECONDS_PER_DAY


def test_relative_posix(tmp_path: Path) -> None:
    assert relative_posix(tmp_path / "a" / "b.txt", tmp_path) == "a/b.txt"


def test_setup_logger_is_idempotent(tmp_path: Path) -> None:
    logger = logging.getLogger(APP_NAME)
    saved = list(logger.handlers)
    for handler in saved:
        logger.removeHandler(handler)
    try:
        first = setup_logger(tmp_path / "logs" / "actions.log")
        second = setup_logger(tmp_path / "other.log")

        assert first is second
        assert len(first.handlers) == 1
        assert (tmp_path / "logs" / "actions.log").exists()
    finally:
        for handler in list(logger.handlers):
            handler.close()
            logger.removeHandler(handler)
        for handler in saved:
            logger.addHandler(handler)
