"""Scanner and fixer for oversized payloads inside conversation logs.

Conversation logs are newline-delimited JSON, one record per line. A record
may carry `message.content` and/or `toolUseResult.content`, each an array of
typed blocks (text, image, document, tool_use, tool_result). Base64 images
and documents, or very long text blocks, bloat the context the assistant
reloads when a session is resumed.

This module provides:
- Line codec that tolerates unparsable lines
- Content classification with one level of tool_result descent
- Per-file scan producing addressed issues
- Fix that backs up the original and rewrites only the affected lines
- Backup discovery, restore and pruning
- Per-conversation statistics
"""

from __future__ import annotations

import copy
import dataclasses
import datetime as dt
import json
import logging
import os
import re
import shutil
import tempfile
from pathlib import Path
from typing import Any, Sequence

from transcript_janitor.common import (
    APP_NAME,
    ScanError,
    age_cutoff,
    epoch_to_iso,
    now_utc_iso,
    walk_files,
)
from transcript_janitor.exceptions import BackupError, TranscriptReadError, TranscriptWriteError

LOGGER = logging.getLogger(APP_NAME)

# ------------------------------- Constants ---------------------------------- #

MIN_PROBLEMATIC_BASE64_SIZE = 100_000
MIN_PROBLEMATIC_TEXT_SIZE = 500_000

LOCATION_MESSAGE = "message"
LOCATION_TOOL_RESULT = "tool_result"
LOCATIONS = (LOCATION_MESSAGE, LOCATION_TOOL_RESULT)

CONTENT_TYPES = ("image", "document", "pdf", "large_text", "unknown")

PLACEHOLDER_TEXT = {
    "image": "[Image removed - exceeded size limit]",
    "pdf": "[PDF removed - exceeded size limit]",
    "document": "[Document removed - exceeded size limit]",
    "large_text": "[Large text content removed - exceeded size limit]",
    "unknown": "[Content removed - exceeded size limit]",
}

BACKUP_MARKER = ".backup."
BACKUP_NAME_RE = re.compile(r"^(.+)\.backup\.\d{4}-\d{2}-\d{2}T")

# surrogateescape keeps undecodable bytes intact on lines we do not rewrite
TEXT_ENCODING = "utf-8"
TEXT_ERRORS = "surrogateescape"

# lone surrogates cannot be written as UTF-8 and must stay \u-escaped
SURROGATE_RE = re.compile(r"[\ud800-\udfff]")

ContentAddress = int | tuple[int, int]


@dataclasses.dataclass(slots=True, frozen=True)
class ContentThresholds:
    """Size limits, in characters, above which an entry is considered oversized."""

    base64_limit: int = MIN_PROBLEMATIC_BASE64_SIZE
    text_limit: int = MIN_PROBLEMATIC_TEXT_SIZE


DEFAULT_THRESHOLDS = ContentThresholds()


# ----------------------------- Content Blocks ------------------------------- #


@dataclasses.dataclass(slots=True)
class TextBlock:
    text: str | None


@dataclasses.dataclass(slots=True)
class ImageBlock:
    source_type: str | None
    data: str | None
    media_type: str | None


@dataclasses.dataclass(slots=True)
class DocumentBlock:
    source_type: str | None
    data: str | None
    media_type: str | None


@dataclasses.dataclass(slots=True)
class ToolUseBlock:
    name: str | None


@dataclasses.dataclass(slots=True)
class ToolResultBlock:
    content: Any


ContentBlock = TextBlock | ImageBlock | DocumentBlock | ToolUseBlock | ToolResultBlock


def _str_or_none(value: Any) -> str | None:
    return value if isinstance(value, str) else None


def parse_block(raw: Any) -> ContentBlock | None:
    """Map one raw content entry onto a block type; unknown shapes give None."""
    if not isinstance(raw, dict):
        return None

    kind = raw.get("type")
    if kind == "text":
        return TextBlock(text=_str_or_none(raw.get("text")))
    if kind in ("image", "document"):
        source = raw.get("source")
        if not isinstance(source, dict):
            source = {}
        cls = ImageBlock if kind == "image" else DocumentBlock
        return cls(
            source_type=_str_or_none(source.get("type")),
            data=_str_or_none(source.get("data")),
            media_type=_str_or_none(source.get("media_type")),
        )
    if kind == "tool_use":
        return ToolUseBlock(name=_str_or_none(raw.get("name")))
    if kind == "tool_result":
        return ToolResultBlock(content=raw.get("content"))
    return None


def block_size(block: ContentBlock | None) -> int:
    if isinstance(block, (ImageBlock, DocumentBlock)):
        if block.source_type == "base64" and block.data:
            return len(block.data)
        return 0
    if isinstance(block, TextBlock):
        return len(block.text) if block.text else 0
    return 0


def block_content_type(block: ContentBlock | None) -> str:
    if isinstance(block, ImageBlock):
        return "image"
    if isinstance(block, DocumentBlock):
        if block.media_type and "pdf" in block.media_type:
            return "pdf"
        return "document"
    if isinstance(block, TextBlock):
        return "large_text"
    return "unknown"


def is_problematic(block: ContentBlock | None, thresholds: ContentThresholds = DEFAULT_THRESHOLDS) -> bool:
    if isinstance(block, (ImageBlock, DocumentBlock)):
        return block.source_type == "base64" and block_size(block) > thresholds.base64_limit
    if isinstance(block, TextBlock):
        return block_size(block) > thresholds.text_limit
    return False


# --------------------------- Content Classifier ----------------------------- #


@dataclasses.dataclass(slots=True)
class ContentCheck:
    has_problems: bool
    addresses: list[ContentAddress]
    total_size: int
    content_type: str
    hits: list[tuple[ContentAddress, str]]


def check_content_for_issues(
    content: Any,
    thresholds: ContentThresholds = DEFAULT_THRESHOLDS,
) -> ContentCheck:
    """Find oversized entries in a content array.

    `tool_result` entries are descended into exactly once; their inner
    entries are addressed as (outer, inner) pairs. `total_size` sums the
    payload sizes of every entry seen, oversized or not, and
    `content_type` is the type of the last oversized entry.
    """
    if not isinstance(content, list):
        return ContentCheck(False, [], 0, "unknown", [])

    hits: list[tuple[ContentAddress, str]] = []
    total_size = 0

    for i, raw in enumerate(content):
        block = parse_block(raw)
        if block is None:
            continue

        total_size += block_size(block)
        if is_problematic(block, thresholds):
            hits.append((i, block_content_type(block)))

        if isinstance(block, ToolResultBlock) and isinstance(block.content, list):
            for j, inner_raw in enumerate(block.content):
                inner = parse_block(inner_raw)
                if inner is None:
                    continue
                total_size += block_size(inner)
                if is_problematic(inner, thresholds):
                    hits.append(((i, j), block_content_type(inner)))

    return ContentCheck(
        has_problems=bool(hits),
        addresses=[address for address, _ in hits],
        total_size=total_size,
        content_type=hits[-1][1] if hits else "unknown",
        hits=hits,
    )


def placeholder_block(content_type: str) -> dict[str, str]:
    return {"type": "text", "text": PLACEHOLDER_TEXT.get(content_type, PLACEHOLDER_TEXT["unknown"])}


def replace_entries(content: list[Any], hits: Sequence[tuple[ContentAddress, str]]) -> list[Any]:
    """Return a deep copy of content with each addressed entry replaced by a placeholder."""
    result = copy.deepcopy(content)
    for address, content_type in hits:
        if isinstance(address, tuple):
            i, j = address
            outer = result[i] if 0 <= i < len(result) else None
            if isinstance(outer, dict) and isinstance(outer.get("content"), list) and 0 <= j < len(outer["content"]):
                outer["content"][j] = placeholder_block(content_type)
        elif 0 <= address < len(result):
            result[address] = placeholder_block(content_type)
    return result


def fix_content_in_message(
    content: list[Any],
    addresses: Sequence[ContentAddress],
    content_type: str = "unknown",
) -> list[Any]:
    return replace_entries(content, [(address, content_type) for address in addresses])


# ---------------------------- Line-Record Codec ----------------------------- #


def split_lines(text: str) -> list[str]:
    return text.split("\n")


def parse_record(line: str) -> dict[str, Any] | None:
    if not line.strip():
        return None
    try:
        record = json.loads(line)
    except (ValueError, RecursionError):
        return None
    return record if isinstance(record, dict) else None


def dump_record(record: dict[str, Any]) -> str:
    """Compact JSON; falls back to ASCII escapes when a string holds lone surrogates."""
    line = json.dumps(record, ensure_ascii=False, separators=(",", ":"))
    if SURROGATE_RE.search(line):
        return json.dumps(record, ensure_ascii=True, separators=(",", ":"))
    return line


def _location_holder(record: dict[str, Any], location: str) -> dict[str, Any] | None:
    key = "message" if location == LOCATION_MESSAGE else "toolUseResult"
    holder = record.get(key)
    return holder if isinstance(holder, dict) else None


# ------------------------------ Data Models --------------------------------- #


def _address_to_json(address: ContentAddress) -> int | list[int]:
    return list(address) if isinstance(address, tuple) else address


@dataclasses.dataclass(slots=True)
class ContentIssue:
    line_number: int
    addresses: list[ContentAddress]
    location: str
    content_type: str
    estimated_size_bytes: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "line_number": self.line_number,
            "addresses": [_address_to_json(a) for a in self.addresses],
            "location": self.location,
            "content_type": self.content_type,
            "estimated_size_bytes": self.estimated_size_bytes,
        }


@dataclasses.dataclass(slots=True)
class ScanResult:
    file_path: str
    issues: list[ContentIssue]
    total_lines: int
    scanned_at: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "file_path": self.file_path,
            "issues": [i.to_dict() for i in self.issues],
            "total_lines": self.total_lines,
            "scanned_at": self.scanned_at,
        }


@dataclasses.dataclass(slots=True)
class FixResult(ScanResult):
    fixed: bool = False
    backup_path: str | None = None
    error: str | None = None

    @classmethod
    def from_scan(cls, scan: ScanResult, **kwargs: Any) -> FixResult:
        return cls(
            file_path=scan.file_path,
            issues=scan.issues,
            total_lines=scan.total_lines,
            scanned_at=scan.scanned_at,
            **kwargs,
        )

    def to_dict(self) -> dict[str, Any]:
        data = ScanResult.to_dict(self)
        data.update({"fixed": self.fixed, "backup_path": self.backup_path, "error": self.error})
        return data


@dataclasses.dataclass(slots=True)
class BatchResult:
    results: list[ScanResult] = dataclasses.field(default_factory=list)
    skipped: list[ScanError] = dataclasses.field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "files": len(self.results),
            "files_with_issues": sum(1 for r in self.results if r.issues),
            "total_issues": sum(len(r.issues) for r in self.results),
            "results": [r.to_dict() for r in self.results],
            "skipped": [s.to_dict() for s in self.skipped],
        }


@dataclasses.dataclass(slots=True)
class ConversationStats:
    file_path: str
    total_messages: int = 0
    user_messages: int = 0
    assistant_messages: int = 0
    tool_uses: int = 0
    image_count: int = 0
    document_count: int = 0
    problematic_content: int = 0
    file_size_bytes: int = 0
    last_modified: float | None = None

    def to_dict(self) -> dict[str, Any]:
        data = dataclasses.asdict(self)
        data["last_modified"] = epoch_to_iso(self.last_modified)
        return data


@dataclasses.dataclass(slots=True)
class RestoreResult:
    success: bool
    original_path: str
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return dataclasses.asdict(self)


@dataclasses.dataclass(slots=True)
class BackupPruneResult:
    deleted: list[str] = dataclasses.field(default_factory=list)
    errors: list[str] = dataclasses.field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return dataclasses.asdict(self)


# --------------------------------- Scan ------------------------------------- #


def _read_bytes(path: str | Path) -> bytes:
    try:
        return Path(path).read_bytes()
    except OSError as exc:
        raise TranscriptReadError(f"Cannot read file {path}: {exc}") from exc


def _decode(raw: bytes) -> str:
    return raw.decode(TEXT_ENCODING, TEXT_ERRORS)


def _encode(text: str) -> bytes:
    return text.encode(TEXT_ENCODING, TEXT_ERRORS)


def scan_text(
    file_path: str | Path,
    text: str,
    thresholds: ContentThresholds = DEFAULT_THRESHOLDS,
) -> ScanResult:
    issues: list[ContentIssue] = []
    lines = split_lines(text)

    for index, line in enumerate(lines):
        record = parse_record(line)
        if record is None:
            continue

        for location in LOCATIONS:
            holder = _location_holder(record, location)
            if holder is None:
                continue
            check = check_content_for_issues(holder.get("content"), thresholds)
            if not check.has_problems:
                continue
            issues.append(
                ContentIssue(
                    line_number=index + 1,
                    addresses=check.addresses,
                    location=location,
                    content_type=check.content_type,
                    estimated_size_bytes=check.total_size,
                )
            )

    return ScanResult(
        file_path=str(file_path),
        issues=issues,
        total_lines=len(lines),
        scanned_at=now_utc_iso(),
    )


def scan_file(file_path: str | Path, thresholds: ContentThresholds = DEFAULT_THRESHOLDS) -> ScanResult:
    """Scan one conversation log. Raises TranscriptReadError if it cannot be read."""
    result = scan_text(file_path, _decode(_read_bytes(file_path)), thresholds)
    LOGGER.debug("scan_complete path=%s lines=%s issues=%s", file_path, result.total_lines, len(result.issues))
    return result


# ---------------------------------- Fix ------------------------------------- #


def backup_path_for(file_path: str | Path, now: dt.datetime | None = None) -> str:
    stamp = now or dt.datetime.now(dt.timezone.utc)
    iso = stamp.strftime("%Y-%m-%dT%H:%M:%S.") + f"{stamp.microsecond // 1000:03d}Z"
    return f"{file_path}{BACKUP_MARKER}{iso.replace(':', '-').replace('.', '-')}"


def _write_backup(file_path: str | Path, raw: bytes) -> str:
    backup = backup_path_for(file_path)
    try:
        Path(backup).write_bytes(raw)
    except OSError as exc:
        raise BackupError(f"Cannot create backup {backup}: {exc}") from exc
    return backup


def _atomic_write(path: Path, data: bytes) -> None:
    """Replace path with data via a sibling temp file, keeping the original mode."""
    tmp: Path | None = None
    try:
        with tempfile.NamedTemporaryFile(
            dir=path.parent, prefix=f".{path.name}.", suffix=".tmp", delete=False
        ) as fh:
            tmp = Path(fh.name)
            fh.write(data)
            fh.flush()
            os.fsync(fh.fileno())
        shutil.copymode(path, tmp)
        os.replace(tmp, path)
    except OSError as exc:
        if tmp is not None:
            try:
                tmp.unlink(missing_ok=True)
            except OSError:
                pass
        raise TranscriptWriteError(f"Cannot write file {path}: {exc}") from exc


def _rewrite_line(line: str, thresholds: ContentThresholds) -> str | None:
    """Re-parse one line and neutralize its oversized entries; None if nothing changed."""
    record = parse_record(line)
    if record is None:
        return None

    changed = False
    for location in LOCATIONS:
        holder = _location_holder(record, location)
        if holder is None:
            continue
        content = holder.get("content")
        check = check_content_for_issues(content, thresholds)
        if check.has_problems:
            holder["content"] = replace_entries(content, check.hits)
            changed = True

    return dump_record(record) if changed else None


def _fix_raw(
    file_path: str | Path,
    raw: bytes,
    create_backup: bool,
    thresholds: ContentThresholds,
) -> FixResult:
    text = _decode(raw)
    scan = scan_text(file_path, text, thresholds)
    if not scan.issues:
        return FixResult.from_scan(scan, fixed=False)

    backup_path = None
    if create_backup:
        try:
            backup_path = _write_backup(file_path, raw)
        except BackupError as exc:
            LOGGER.error("fix_backup_failed path=%s err=%s", file_path, exc)
            return FixResult.from_scan(scan, fixed=False, error=str(exc))

    lines = split_lines(text)
    for line_number in sorted({issue.line_number for issue in scan.issues}):
        replacement = _rewrite_line(lines[line_number - 1], thresholds)
        if replacement is not None:
            lines[line_number - 1] = replacement

    try:
        try:
            data = _encode("\n".join(lines))
        except UnicodeEncodeError as exc:
            raise TranscriptWriteError(f"Cannot encode file {file_path}: {exc}") from exc
        _atomic_write(Path(file_path), data)
    except TranscriptWriteError as exc:
        LOGGER.error("fix_write_failed path=%s backup=%s err=%s", file_path, backup_path, exc)
        return FixResult.from_scan(scan, fixed=False, error=str(exc), backup_path=backup_path)

    LOGGER.info("fix_complete path=%s issues=%s backup=%s", file_path, len(scan.issues), backup_path)
    return FixResult.from_scan(scan, fixed=True, backup_path=backup_path)


def fix_file(
    file_path: str | Path,
    create_backup: bool = True,
    thresholds: ContentThresholds = DEFAULT_THRESHOLDS,
) -> FixResult:
    """Neutralize oversized content in one log, touching only the affected lines."""
    try:
        raw = _read_bytes(file_path)
    except TranscriptReadError as exc:
        return FixResult(
            file_path=str(file_path),
            issues=[],
            total_lines=0,
            scanned_at=now_utc_iso(),
            fixed=False,
            error=str(exc),
        )
    return _fix_raw(file_path, raw, create_backup, thresholds)


# --------------------------------- Batch ------------------------------------ #


def find_jsonl_files(root: str | Path) -> list[str]:
    return sorted(
        f.path
        for f in walk_files(root).files
        if f.path.endswith(".jsonl") and BACKUP_MARKER not in os.path.basename(f.path)
    )


def find_backup_files(root: str | Path) -> list[str]:
    return sorted(f.path for f in walk_files(root).files if BACKUP_MARKER in os.path.basename(f.path))


def scan_directory(root: str | Path, thresholds: ContentThresholds = DEFAULT_THRESHOLDS) -> BatchResult:
    batch = BatchResult()
    for path in find_jsonl_files(root):
        try:
            batch.results.append(scan_file(path, thresholds))
        except TranscriptReadError as exc:
            batch.skipped.append(ScanError(path=path, error=str(exc)))
    return batch


def fix_directory(
    root: str | Path,
    create_backup: bool = True,
    thresholds: ContentThresholds = DEFAULT_THRESHOLDS,
) -> BatchResult:
    batch = BatchResult()
    for path in find_jsonl_files(root):
        try:
            raw = _read_bytes(path)
        except TranscriptReadError as exc:
            batch.skipped.append(ScanError(path=path, error=str(exc)))
            continue
        batch.results.append(_fix_raw(path, raw, create_backup, thresholds))
    return batch


# -------------------------------- Backups ----------------------------------- #


def restore_from_backup(backup_path: str | Path) -> RestoreResult:
    backup = str(backup_path)
    if not os.path.isfile(backup):
        return RestoreResult(success=False, original_path="", error="Backup file not found")

    match = BACKUP_NAME_RE.match(backup)
    if not match:
        return RestoreResult(success=False, original_path="", error="Invalid backup file name format")

    original = match.group(1)
    try:
        shutil.copyfile(backup, original)
    except OSError as exc:
        LOGGER.error("restore_failed backup=%s original=%s err=%s", backup, original, exc)
        return RestoreResult(success=False, original_path=original, error=f"Failed to restore: {exc}")

    LOGGER.info("restore_success backup=%s original=%s", backup, original)
    return RestoreResult(success=True, original_path=original)


def delete_old_backups(root: str | Path, older_than_days: int) -> BackupPruneResult:
    result = BackupPruneResult()
    cutoff = age_cutoff(older_than_days) if older_than_days > 0 else float("inf")

    for backup in find_backup_files(root):
        try:
            if os.stat(backup).st_mtime < cutoff:
                os.unlink(backup)
                result.deleted.append(backup)
                LOGGER.info("backup_deleted path=%s", backup)
        except OSError as exc:
            result.errors.append(f"{backup}: {exc}")
            LOGGER.error("backup_delete_failed path=%s err=%s", backup, exc)

    return result


# --------------------------------- Stats ------------------------------------ #


def _count_media(stats: ConversationStats, content: Any) -> None:
    if not isinstance(content, list):
        return
    for raw in content:
        block = parse_block(raw)
        if isinstance(block, ImageBlock):
            stats.image_count += 1
        elif isinstance(block, DocumentBlock):
            stats.document_count += 1
        else:
            continue
        if is_problematic(block):
            stats.problematic_content += 1


def get_conversation_stats(file_path: str | Path) -> ConversationStats:
    stats = ConversationStats(file_path=str(file_path))

    try:
        st = os.stat(file_path)
        text = _decode(_read_bytes(file_path))
    except (OSError, TranscriptReadError):
        return stats

    stats.file_size_bytes = int(st.st_size)
    stats.last_modified = float(st.st_mtime)

    for line in split_lines(text):
        record = parse_record(line)
        if record is None:
            continue
        stats.total_messages += 1

        message = _location_holder(record, LOCATION_MESSAGE)
        if message is not None:
            role = message.get("role")
            if role == "user":
                stats.user_messages += 1
            elif role == "assistant":
                stats.assistant_messages += 1

            content = message.get("content")
            if isinstance(content, list):
                stats.tool_uses += sum(1 for raw in content if isinstance(parse_block(raw), ToolUseBlock))
            _count_media(stats, content)

        tool_result = _location_holder(record, LOCATION_TOOL_RESULT)
        if tool_result is not None:
            _count_media(stats, tool_result.get("content"))

    return stats


__all__ = [
    "BatchResult",
    "ContentCheck",
    "ContentIssue",
    "ContentThresholds",
    "ConversationStats",
    "FixResult",
    "ScanResult",
    "check_content_for_issues",
    "delete_old_backups",
    "find_backup_files",
    "find_jsonl_files",
    "fix_content_in_message",
    "fix_directory",
    "fix_file",
    "get_conversation_stats",
    "restore_from_backup",
    "scan_directory",
    "scan_file",
]
