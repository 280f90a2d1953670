"""Trace inventory and disposal for the assistant's data root.

Every file under the data root is mapped onto a fixed, ordered taxonomy of
trace categories, each with a sensitivity level and an impact warning. On
top of that inventory sit:
- Selective cleanup with dry-run default, category/age/project filters
- Preview of what a clean or wipe would touch, with exclusion attribution
- Secure wipe (zero overwrite, then unlink) behind an explicit confirmation
- Session-hook settings that keep new traces from piling up

User exclusions protect matching files from both cleanup and wipe.
"""

from __future__ import annotations

import dataclasses
import json
import logging
import os
import re
import shlex
from pathlib import Path
from typing import Any, Iterator, Sequence

from transcript_janitor.common import (
    APP_NAME,
    DEFAULT_DATA_ROOT,
    WIPE_CHUNK_BYTES,
    ScanError,
    age_cutoff,
    epoch_to_iso,
    human_bytes,
    now_utc_iso,
    relative_posix,
    walk_files,
)
from transcript_janitor.options import (
    CleanOptions,
    Exclusion,
    GuardOptions,
    InventoryOptions,
    PreviewOptions,
    WipeOptions,
)

LOGGER = logging.getLogger(APP_NAME)

SENSITIVITY_LEVELS = ("critical", "high", "medium", "low")

# clean skips these unless they are named explicitly
DEFAULT_PROTECTED_CATEGORIES = frozenset({"agents", "ide-locks"})

SETTINGS_FILES = ("settings.json", "CLAUDE.md")

# empty subdirectories under these are swept after a wipe
WIPE_SWEEP_DIRS = (
    "debug",
    "todos",
    "shell-snapshots",
    "file-history",
    "session-env",
    "plans",
    "statsig",
    "agents",
)

WIPE_NOT_CONFIRMED = "Wipe not confirmed. Pass confirm=True to execute."


# ------------------------------- Rule Table --------------------------------- #


@dataclasses.dataclass(slots=True, frozen=True)
class TraceCategoryRule:
    name: str
    description: str
    sensitivity: str
    path_prefixes: tuple[str, ...]
    pattern: re.Pattern[str] | None
    impact_warning: str

    def matches(self, rel_path: str) -> bool:
        for prefix in self.path_prefixes:
            if prefix == ".":
                if "/" in rel_path:
                    continue
                if self.pattern is None or self.pattern.search(rel_path):
                    return True
            elif rel_path.startswith(prefix + "/"):
                if self.pattern is None or self.pattern.search(rel_path):
                    return True
        return False


def _rule(
    name: str,
    description: str,
    sensitivity: str,
    prefixes: Sequence[str],
    impact_warning: str,
    pattern: str | None = None,
) -> TraceCategoryRule:
    return TraceCategoryRule(
        name=name,
        description=description,
        sensitivity=sensitivity,
        path_prefixes=tuple(prefixes),
        pattern=re.compile(pattern) if pattern else None,
        impact_warning=impact_warning,
    )


# Order matters: the first matching rule wins. subagents precedes
# conversations because both live under projects/ and end in .jsonl.
TRACE_CATEGORIES: tuple[TraceCategoryRule, ...] = (
    _rule(
        "subagents",
        "Sub-agent conversation transcripts",
        "critical",
        ["projects"],
        "All sub-agent conversation transcripts will be deleted. Background task history "
        "and multi-step operation logs will be lost.",
        pattern=r"subagents/agent-.*\.jsonl$",
    ),
    _rule(
        "conversations",
        "Full conversation transcripts with all code and prompts",
        "critical",
        ["projects"],
        "Your prompts, code snippets, and complete conversation history will be permanently "
        "deleted. You will lose the ability to review past sessions or resume conversations.",
        pattern=r"\.jsonl$",
    ),
    _rule(
        "debug-logs",
        "Session debug information",
        "high",
        ["debug"],
        "Session debug logs will be deleted. These contain troubleshooting information "
        "useful for diagnosing issues.",
    ),
    _rule(
        "file-history",
        "Full snapshots of every file the assistant edited",
        "critical",
        ["file-history"],
        "Complete file edit history will be deleted. You will LOSE THE ABILITY TO REVERT "
        "changes the assistant made to your files.",
    ),
    _rule(
        "shell-snapshots",
        "Shell environment variables, PATH, and exports",
        "high",
        ["shell-snapshots"],
        "Shell environment snapshots will be deleted. These may contain PATH info, "
        "environment variables, and shell configuration.",
    ),
    _rule(
        "session-env",
        "Per-session environment data",
        "medium",
        ["session-env"],
        "Per-session environment data will be removed. This includes session-specific "
        "configuration and state.",
    ),
    _rule(
        "memory",
        "Auto-generated notes about your codebase",
        "high",
        ["projects"],
        "Auto-generated codebase notes and learned patterns will be deleted. The assistant "
        "will need to re-learn your project structure.",
        pattern=r"memory/",
    ),
    _rule(
        "history",
        "Index of all sessions with timestamps and project paths",
        "medium",
        ["."],
        "Session history index will be deleted. Resuming will not be able to find "
        "previous sessions.",
        pattern=r"^history\.jsonl$",
    ),
    _rule(
        "stats",
        "Daily activity, token counts, model usage",
        "medium",
        ["."],
        "Usage statistics will be cleared. Daily activity tracking and token usage history "
        "will be lost.",
        pattern=r"^stats-cache\.json$",
    ),
    _rule(
        "todos",
        "Task lists from sessions",
        "low",
        ["todos"],
        "Task lists from previous sessions will be deleted.",
    ),
    _rule(
        "plans",
        "Implementation plan files",
        "medium",
        ["plans"],
        "Implementation plans created during planning sessions will be deleted.",
    ),
    _rule(
        "telemetry",
        "Feature flags, stable user IDs, experiment data",
        "medium",
        ["statsig"],
        "Telemetry data including feature flags and experiment information will be removed.",
    ),
    _rule(
        "security-state",
        "Trust verification state per project",
        "low",
        ["."],
        "Security trust state will be reset. You may need to re-approve projects.",
        pattern=r"^security_warnings_state",
    ),
    _rule(
        "ide-locks",
        "IDE integration process state",
        "low",
        ["ide"],
        "IDE lock files will be removed. Active IDE connections may be disrupted.",
    ),
    _rule(
        "agents",
        "Custom agent definitions",
        "low",
        ["agents"],
        "Custom agent definitions will be deleted. Your configured agents will need to be "
        "recreated.",
    ),
    _rule(
        "sessions-index",
        "Session metadata, first prompts, timestamps",
        "medium",
        ["projects"],
        "Session index metadata will be deleted. Quick session lookup functionality may be "
        "affected.",
        pattern=r"sessions-index\.json$",
    ),
    _rule(
        "plugins",
        "Installed plugin metadata and configuration",
        "low",
        ["plugins"],
        "Plugin registrations and configuration will be deleted. Installed plugins will need "
        "to be set up again.",
    ),
)

RULES_BY_NAME = {rule.name: rule for rule in TRACE_CATEGORIES}


# ----------------------------- Classification ------------------------------- #


class TraceClassifier:
    """Map files under a data root onto the first matching trace category."""

    def __init__(self, root: str | Path, rules: Sequence[TraceCategoryRule] = TRACE_CATEGORIES):
        self.root = Path(root)
        self.rules = rules

    def classify_relative(self, rel_path: str) -> TraceCategoryRule | None:
        for rule in self.rules:
            if rule.matches(rel_path):
                return rule
        return None

    def classify(self, path: str | Path) -> TraceCategoryRule | None:
        return self.classify_relative(relative_posix(path, self.root))


def glob_to_regex(pattern: str) -> re.Pattern[str]:
    """`*` matches any run of characters, `?` any single one; the rest is literal."""
    parts = []
    for ch in pattern:
        if ch == "*":
            parts.append(".*")
        elif ch == "?":
            parts.append(".")
        else:
            parts.append(re.escape(ch))
    return re.compile("".join(parts))


class ExclusionMatcher:
    """Evaluate user exclusions in list order; the first match is returned."""

    def __init__(self, root: str | Path, exclusions: Sequence[Exclusion] | None = None):
        self.root = Path(root)
        self.exclusions = list(exclusions or [])
        self._globs = {
            idx: glob_to_regex(exc.value)
            for idx, exc in enumerate(self.exclusions)
            if exc.type == "path"
        }

    def match(self, path: str | Path, category: str) -> Exclusion | None:
        if not self.exclusions:
            return None
        abs_path = str(path)
        rel_path = relative_posix(path, self.root)

        for idx, exc in enumerate(self.exclusions):
            if exc.type == "category" and exc.value == category:
                return exc
            if exc.type == "project" and (exc.value in rel_path or exc.value in abs_path):
                return exc
            if exc.type == "path" and self._globs[idx].search(rel_path):
                return exc
        return None


# ------------------------------ Data Models --------------------------------- #


@dataclasses.dataclass(slots=True)
class TraceItem:
    category: str
    path: str
    size_bytes: int
    modified_at: float
    sensitivity: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "category": self.category,
            "path": self.path,
            "size_bytes": self.size_bytes,
            "modified_at": epoch_to_iso(self.modified_at),
            "sensitivity": self.sensitivity,
        }


@dataclasses.dataclass(slots=True)
class TraceCategory:
    name: str
    description: str
    sensitivity: str
    items: list[TraceItem] = dataclasses.field(default_factory=list)
    total_size: int = 0
    file_count: int = 0
    oldest_file: float | None = None
    newest_file: float | None = None

    def add(self, item: TraceItem) -> None:
        self.items.append(item)
        self.total_size += item.size_bytes
        self.file_count += 1
        if self.oldest_file is None or item.modified_at < self.oldest_file:
            self.oldest_file = item.modified_at
        if self.newest_file is None or item.modified_at > self.newest_file:
            self.newest_file = item.modified_at

    def to_dict(self, include_items: bool = True) -> dict[str, Any]:
        data: dict[str, Any] = {
            "name": self.name,
            "description": self.description,
            "sensitivity": self.sensitivity,
            "total_size": self.total_size,
            "total_human": human_bytes(self.total_size),
            "file_count": self.file_count,
            "oldest_file": epoch_to_iso(self.oldest_file),
            "newest_file": epoch_to_iso(self.newest_file),
        }
        if include_items:
            data["items"] = [i.to_dict() for i in self.items]
        return data


@dataclasses.dataclass(slots=True)
class TraceInventory:
    total_size: int
    total_files: int
    categories: list[TraceCategory]
    critical_items: int
    high_items: int
    analyzed_at: str
    skipped: list[ScanError] = dataclasses.field(default_factory=list)

    def category(self, name: str) -> TraceCategory | None:
        for cat in self.categories:
            if cat.name == name:
                return cat
        return None

    def to_dict(self, include_items: bool = True) -> dict[str, Any]:
        return {
            "total_size": self.total_size,
            "total_human": human_bytes(self.total_size),
            "total_files": self.total_files,
            "critical_items": self.critical_items,
            "high_items": self.high_items,
            "analyzed_at": self.analyzed_at,
            "categories": [c.to_dict(include_items) for c in self.categories],
            "skipped": [s.to_dict() for s in self.skipped],
        }


@dataclasses.dataclass(slots=True)
class CleanResult:
    dry_run: bool
    deleted: list[str] = dataclasses.field(default_factory=list)
    freed: int = 0
    errors: list[str] = dataclasses.field(default_factory=list)
    categories_affected: list[str] = dataclasses.field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        data = dataclasses.asdict(self)
        data["freed_human"] = human_bytes(self.freed)
        return data


@dataclasses.dataclass(slots=True)
class WipeResult:
    files_wiped: int = 0
    bytes_freed: int = 0
    categories_wiped: list[str] = dataclasses.field(default_factory=list)
    preserved: list[str] = dataclasses.field(default_factory=list)
    errors: list[str] = dataclasses.field(default_factory=list)
    wipe_receipt: str = ""
    completed_at: str = dataclasses.field(default_factory=now_utc_iso)

    def to_dict(self) -> dict[str, Any]:
        return dataclasses.asdict(self)


@dataclasses.dataclass(slots=True)
class CategoryPreview:
    name: str
    sensitivity: str
    description: str
    file_count: int
    total_size: int
    sample_paths: list[str]
    impact_warning: str


@dataclasses.dataclass(slots=True)
class ExclusionPreview:
    exclusion: Exclusion
    matched_files: int = 0
    matched_size: int = 0


@dataclasses.dataclass(slots=True)
class TracePreview:
    summary: dict[str, int]
    by_category: list[CategoryPreview]
    preserved_by_exclusion: list[ExclusionPreview]
    preserve_settings: bool
    total_preserved: int
    warnings: list[str]

    def to_dict(self) -> dict[str, Any]:
        return {
            "summary": dict(self.summary),
            "by_category": [dataclasses.asdict(c) for c in self.by_category],
            "preserved": {
                "by_exclusion": [
                    {
                        "exclusion": p.exclusion.model_dump(),
                        "matched_files": p.matched_files,
                        "matched_size": p.matched_size,
                    }
                    for p in self.preserved_by_exclusion
                ],
                "settings": self.preserve_settings,
                "total_preserved": self.total_preserved,
            },
            "warnings": list(self.warnings),
        }


# ------------------------------- Inventory ---------------------------------- #


def is_infrastructure(rel_path: str) -> bool:
    """Package-manager and marketplace bundles are tooling, not user traces."""
    if "node_modules" in rel_path.split("/"):
        return True
    return rel_path.startswith("plugins/marketplaces/")


class TraceInventoryBuilder:
    """Walk a data root and group every classified file by trace category."""

    def __init__(self, root: str | Path, classifier: TraceClassifier | None = None):
        self.root = Path(root)
        self.classifier = classifier or TraceClassifier(self.root)

    def build(self, project: str | None = None) -> TraceInventory:
        categories = {
            rule.name: TraceCategory(name=rule.name, description=rule.description, sensitivity=rule.sensitivity)
            for rule in self.classifier.rules
        }

        walk = walk_files(self.root)
        for entry in walk.files:
            rel_path = relative_posix(entry.path, self.root)
            if is_infrastructure(rel_path):
                continue
            if project and rel_path.startswith("projects/") and project not in rel_path:
                continue

            rule = self.classifier.classify_relative(rel_path)
            if rule is None:
                continue

            categories[rule.name].add(
                TraceItem(
                    category=rule.name,
                    path=entry.path,
                    size_bytes=entry.size,
                    modified_at=entry.mtime,
                    sensitivity=rule.sensitivity,
                )
            )

        populated = [c for c in categories.values() if c.file_count > 0]
        for cat in populated:
            cat.items.sort(key=lambda i: i.path)

        if walk.errors:
            LOGGER.warning("inventory_skipped root=%s count=%s", self.root, len(walk.errors))

        return TraceInventory(
            total_size=sum(c.total_size for c in populated),
            total_files=sum(c.file_count for c in populated),
            categories=populated,
            critical_items=sum(c.file_count for c in populated if c.sensitivity == "critical"),
            high_items=sum(c.file_count for c in populated if c.sensitivity == "high"),
            analyzed_at=now_utc_iso(),
            skipped=walk.errors,
        )


def inventory_traces(
    root: str | Path = DEFAULT_DATA_ROOT,
    options: InventoryOptions | None = None,
) -> TraceInventory:
    opts = options or InventoryOptions()
    return TraceInventoryBuilder(root).build(project=opts.project)


# ------------------------------- Selection ---------------------------------- #


def settings_paths(root: str | Path) -> set[str]:
    return {str(Path(root) / name) for name in SETTINGS_FILES}


def select_clean_candidates(
    root: str | Path,
    inventory: TraceInventory,
    options: CleanOptions,
    now_ts: float | None = None,
) -> Iterator[tuple[TraceCategory, list[TraceItem]]]:
    """Yield (category, items) pairs a clean would remove; shared by dry-run and execute."""
    matcher = ExclusionMatcher(root, options.exclusions)
    preserve = settings_paths(root) if options.preserve_settings else set()
    cutoff = age_cutoff(options.days, now_ts)

    for category in inventory.categories:
        if options.categories is not None:
            if category.name not in options.categories:
                continue
        elif category.name in DEFAULT_PROTECTED_CATEGORIES:
            continue

        selected = []
        for item in category.items:
            if item.path in preserve:
                continue
            if cutoff and item.modified_at > cutoff:
                continue
            if matcher.match(item.path, category.name) is not None:
                continue
            selected.append(item)

        if selected:
            yield category, selected


# -------------------------------- Cleanup ----------------------------------- #


def clean_traces(
    root: str | Path = DEFAULT_DATA_ROOT,
    options: CleanOptions | None = None,
) -> CleanResult:
    opts = options or CleanOptions()
    inventory = TraceInventoryBuilder(root).build(project=opts.project)
    result = CleanResult(dry_run=opts.dry_run)

    for category, items in select_clean_candidates(root, inventory, opts):
        affected = False
        for item in items:
            if not opts.dry_run:
                try:
                    os.unlink(item.path)
                except OSError as exc:
                    result.errors.append(f"{item.path}: {exc}")
                    LOGGER.error("clean_failed path=%s err=%s", item.path, exc)
                    continue
                LOGGER.info("clean_success path=%s category=%s", item.path, category.name)
            result.deleted.append(item.path)
            result.freed += item.size_bytes
            affected = True
        if affected:
            result.categories_affected.append(category.name)

    LOGGER.info(
        "clean_complete root=%s dry_run=%s files=%s bytes=%s errors=%s",
        root,
        opts.dry_run,
        len(result.deleted),
        result.freed,
        len(result.errors),
    )
    return result


def truncate_path(full_path: str, max_segments: int = 3) -> str:
    parts = full_path.split(os.sep)
    if len(parts) <= max_segments:
        return full_path
    return "..." + os.sep + os.sep.join(parts[-max_segments:])


def preview_traces(
    root: str | Path = DEFAULT_DATA_ROOT,
    options: PreviewOptions | None = None,
) -> TracePreview:
    opts = options or PreviewOptions()
    inventory = TraceInventoryBuilder(root).build()
    matcher = ExclusionMatcher(root, opts.exclusions)
    cutoff = age_cutoff(opts.days)

    summary = {
        "total_files": 0,
        "total_size": 0,
        "critical_files": 0,
        "high_files": 0,
        "medium_files": 0,
        "low_files": 0,
    }
    by_category: list[CategoryPreview] = []
    by_exclusion: dict[str, ExclusionPreview] = {}
    total_preserved = 0

    for category in inventory.categories:
        if opts.categories is not None:
            if category.name not in opts.categories:
                continue
        elif opts.operation == "clean" and category.name in DEFAULT_PROTECTED_CATEGORIES:
            continue

        sample_paths: list[str] = []
        included_files = 0
        included_size = 0

        for item in category.items:
            if cutoff and item.modified_at > cutoff:
                continue

            exc = matcher.match(item.path, category.name)
            if exc is not None:
                entry = by_exclusion.setdefault(exc.key(), ExclusionPreview(exclusion=exc))
                entry.matched_files += 1
                entry.matched_size += item.size_bytes
                total_preserved += 1
                continue

            included_files += 1
            included_size += item.size_bytes
            if len(sample_paths) < 5:
                sample_paths.append(truncate_path(item.path))

        if included_files == 0:
            continue

        summary["total_files"] += included_files
        summary["total_size"] += included_size
        summary[f"{category.sensitivity}_files"] += included_files

        rule = RULES_BY_NAME.get(category.name)
        by_category.append(
            CategoryPreview(
                name=category.name,
                sensitivity=category.sensitivity,
                description=category.description,
                file_count=included_files,
                total_size=included_size,
                sample_paths=sample_paths,
                impact_warning=rule.impact_warning if rule else category.description,
            )
        )

    warnings = []
    if summary["critical_files"] > 0:
        warnings.append(
            f"{summary['critical_files']} critical sensitivity files will be deleted including "
            "conversation history and file edit backups."
        )
    if opts.operation == "wipe":
        warnings.append("SECURE WIPE: Files will be overwritten with zeros before deletion. Recovery is NOT possible.")

    return TracePreview(
        summary=summary,
        by_category=by_category,
        preserved_by_exclusion=list(by_exclusion.values()),
        preserve_settings=True,
        total_preserved=total_preserved,
        warnings=warnings,
    )


# --------------------------------- Wipe ------------------------------------- #


def secure_delete(path: str | Path, chunk_size: int = WIPE_CHUNK_BYTES) -> None:
    """Overwrite a file with zeros, then unlink it.

    If the overwrite fails the file is still unlinked; an OSError from the
    unlink itself propagates.
    """
    try:
        size = os.stat(path).st_size
        zeros = bytes(min(size, chunk_size))
        with open(path, "r+b") as fh:
            written = 0
            while written < size:
                n = min(len(zeros), size - written)
                fh.write(zeros[:n])
                written += n
            fh.flush()
            os.fsync(fh.fileno())
    except OSError as exc:
        LOGGER.warning("wipe_overwrite_failed path=%s err=%s", path, exc)
    os.unlink(path)


def remove_empty_dirs(root: str | Path, subdirs: Sequence[str] = WIPE_SWEEP_DIRS) -> None:
    for name in subdirs:
        base = Path(root) / name
        if not base.is_dir():
            continue
        for dirpath, _, _ in os.walk(base, topdown=False):
            if Path(dirpath) == base:
                continue
            try:
                os.rmdir(dirpath)
            except OSError:
                pass


def wipe_all_traces(
    root: str | Path = DEFAULT_DATA_ROOT,
    options: WipeOptions | None = None,
) -> WipeResult:
    opts = options or WipeOptions()
    if not opts.confirm:
        return WipeResult(preserved=[WIPE_NOT_CONFIRMED])

    inventory = TraceInventoryBuilder(root).build()
    matcher = ExclusionMatcher(root, opts.exclusions)
    result = WipeResult()

    skip_paths: set[str] = set()
    if opts.keep_settings:
        skip_paths = settings_paths(root)
        result.preserved.extend(SETTINGS_FILES)
    if opts.keep_plugins:
        result.preserved.append("plugins/")

    receipt = [
        "Trace Wipe Receipt",
        f"Date: {now_utc_iso()}",
        f"Directory: {root}",
        "",
    ]

    skipped_by_exclusion = 0
    for category in inventory.categories:
        if opts.keep_plugins and category.name == "plugins":
            continue

        cat_files = 0
        cat_bytes = 0
        for item in category.items:
            if item.path in skip_paths:
                continue
            if matcher.match(item.path, category.name) is not None:
                skipped_by_exclusion += 1
                continue

            try:
                secure_delete(item.path)
            except OSError as exc:
                result.errors.append(f"{item.path}: {exc}")
                LOGGER.error("wipe_failed path=%s err=%s", item.path, exc)
                continue

            LOGGER.info("wipe_success path=%s category=%s", item.path, category.name)
            result.files_wiped += 1
            result.bytes_freed += item.size_bytes
            cat_files += 1
            cat_bytes += item.size_bytes

        if cat_files > 0:
            result.categories_wiped.append(category.name)
            receipt.append(f"{category.name}: {cat_files} files ({human_bytes(cat_bytes)})")

    if skipped_by_exclusion > 0:
        result.preserved.append(f"{skipped_by_exclusion} files (by exclusion rules)")

    remove_empty_dirs(root)

    receipt.extend(["", f"Total: {result.files_wiped} files, {human_bytes(result.bytes_freed)}"])
    result.wipe_receipt = "\n".join(receipt)
    result.completed_at = now_utc_iso()

    LOGGER.info(
        "wipe_complete root=%s files=%s bytes=%s errors=%s",
        root,
        result.files_wiped,
        result.bytes_freed,
        len(result.errors),
    )
    return result


# ------------------------------ Guard Hooks --------------------------------- #


@dataclasses.dataclass(slots=True)
class TraceGuardHook:
    event: str
    command: str
    description: str
    matcher: str | None = None


@dataclasses.dataclass(slots=True)
class TraceGuardConfig:
    mode: str
    hooks: list[TraceGuardHook]
    settings_json: str
    instructions: str

    def to_dict(self) -> dict[str, Any]:
        return dataclasses.asdict(self)


GUARD_MODE_NOTES = {
    "paranoid": "PARANOID MODE: All traces deleted after every session. No conversation history will be preserved.",
    "moderate": "MODERATE MODE: Traces older than 24h deleted. Recent session available for --resume.",
    "minimal": "MINIMAL MODE: Only old debug/snapshot traces cleaned. Conversations preserved.",
}


def _sweep_command(*finds: str) -> str:
    return "sh -c " + shlex.quote("; ".join(finds) + "; exit 0")


def _find_delete(directory: Path, name_glob: str, age: str = "", extra: str = "") -> str:
    parts = ["find", shlex.quote(str(directory)), "-name", shlex.quote(name_glob)]
    if extra:
        parts.append(extra)
    if age:
        parts.append(age)
    parts.extend(["-delete", "2>/dev/null"])
    return " ".join(parts)


def _guard_hooks(root: Path, mode: str) -> list[TraceGuardHook]:
    debug, snapshots, projects = root / "debug", root / "shell-snapshots", root / "projects"
    not_backup = "-not -name " + shlex.quote("*.backup.*")

    if mode == "paranoid":
        return [
            TraceGuardHook(
                event="PostToolUse",
                matcher="Write",
                command="sh -c " + shlex.quote('echo "$TOOL_INPUT" | grep -qi "CLAUDE.md" && exit 2 || exit 0'),
                description="Block CLAUDE.md writes",
            ),
            TraceGuardHook(
                event="SessionEnd",
                command=_sweep_command(
                    _find_delete(debug, "*.txt", "-mmin +5"),
                    _find_delete(snapshots, "*.sh"),
                ),
                description="Delete debug logs and shell snapshots after every session",
            ),
            TraceGuardHook(
                event="SessionEnd",
                command=_sweep_command(_find_delete(projects, "*.jsonl", extra=not_backup)),
                description="Delete conversation transcripts after every session",
            ),
        ]
    if mode == "moderate":
        return [
            TraceGuardHook(
                event="SessionEnd",
                command=_sweep_command(
                    _find_delete(debug, "*.txt", "-mtime +1"),
                    _find_delete(snapshots, "*.sh", "-mtime +1"),
                ),
                description="Delete debug logs and snapshots older than 24 hours",
            ),
            TraceGuardHook(
                event="SessionEnd",
                command=_sweep_command(_find_delete(projects, "*.jsonl", "-mtime +1", extra=not_backup)),
                description="Delete conversation transcripts older than 24 hours",
            ),
        ]
    return [
        TraceGuardHook(
            event="SessionEnd",
            command=_sweep_command(
                _find_delete(debug, "*.txt", "-mtime +7"),
                _find_delete(snapshots, "*.sh", "-mtime +7"),
            ),
            description="Delete debug logs and snapshots older than 7 days",
        )
    ]


def generate_trace_guard_hooks(
    root: str | Path = DEFAULT_DATA_ROOT,
    options: GuardOptions | None = None,
) -> TraceGuardConfig:
    """Build session-hook settings that keep traces from piling up.

    Nothing is installed; the caller pastes `settings_json` into a settings file.
    """
    opts = options or GuardOptions()
    hooks = _guard_hooks(Path(root), opts.mode)

    config: dict[str, list[dict[str, Any]]] = {}
    for hook in hooks:
        hook_def: dict[str, Any] = {"type": "command", "command": hook.command}
        if hook.matcher:
            hook_def["matcher"] = hook.matcher
        config.setdefault(hook.event, []).append({"matcher": hook.matcher or "*", "hooks": [hook_def]})
    settings_json = json.dumps({"hooks": config}, indent=2)

    instructions = "\n".join(
        [
            f"Trace Guard Configuration ({opts.mode} mode)",
            "",
            f"To install, add the following to {Path(root) / 'settings.json'}:",
            "",
            settings_json,
            "",
            "Or for project-level enforcement, add to .claude/settings.json in your project.",
            "",
            "For managed/enterprise deployment, place in:",
            "  macOS: /Library/Application Support/ClaudeCode/managed-settings.json",
            "  Linux: /etc/claude-code/managed-settings.json",
            "",
            GUARD_MODE_NOTES[opts.mode],
        ]
    )

    LOGGER.info("guard_hooks_generated mode=%s hooks=%s", opts.mode, len(hooks))
    return TraceGuardConfig(mode=opts.mode, hooks=hooks, settings_json=settings_json, instructions=instructions)


__all__ = [
    "CleanResult",
    "ExclusionMatcher",
    "TRACE_CATEGORIES",
    "TraceCategory",
    "TraceCategoryRule",
    "TraceGuardConfig",
    "TraceGuardHook",
    "TraceClassifier",
    "TraceInventory",
    "TraceInventoryBuilder",
    "TraceItem",
    "TracePreview",
    "WipeResult",
    "clean_traces",
    "generate_trace_guard_hooks",
    "inventory_traces",
    "preview_traces",
    "secure_delete",
    "wipe_all_traces",
]
