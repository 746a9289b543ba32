# walker.py
# Depth-first directory traversal shared by browse, find, search, replace
# and backup.
#
# Collection follows native os.scandir order. walk() sorts files and
# directories separately afterwards. A directory that cannot be opened
# contributes nothing and never fails the walk.

import os
from datetime import datetime
from pathlib import Path
from typing import Callable, Iterable, Iterator

from loguru import logger

from cursor_ai.matcher import extension_of
from cursor_ai.models import FileEntry, WalkConfig, WalkResult

HIDDEN_MARKER = "."


# ---------------------------------------------------------------------------
# Low-level traversal
# ---------------------------------------------------------------------------


def scan(
    root: str | Path,
    *,
    max_depth: int | None = None,
    include_hidden: bool = False,
    exclude_dirs: Iterable[str] = (),
    skip_dir: Callable[[str], bool] | None = None,
) -> Iterator[tuple[os.DirEntry, int, bool]]:
    """
    Yield (entry, depth, is_dir) for everything under root.

    Entries directly inside root have depth 0. A directory is descended into
    only while depth < max_depth (None means unbounded). Directories named in
    exclude_dirs, or for which skip_dir returns True, are pruned: neither
    yielded nor opened. Symlinked directories are not followed.
    """
    excluded = frozenset(exclude_dirs)
    yield from _scan_dir(str(root), 0, max_depth, include_hidden, excluded, skip_dir)


def _scan_dir(
    directory: str,
    depth: int,
    max_depth: int | None,
    include_hidden: bool,
    excluded: frozenset,
    skip_dir: Callable[[str], bool] | None,
) -> Iterator[tuple[os.DirEntry, int, bool]]:
    try:
        with os.scandir(directory) as it:
            entries = list(it)
    except OSError as exc:
        logger.debug("scan: skipping unreadable directory '{}': {}", directory, exc)
        return

    for entry in entries:
        if not include_hidden and entry.name.startswith(HIDDEN_MARKER):
            continue
        try:
            is_dir = entry.is_dir(follow_symlinks=False)
            is_file = not is_dir and entry.is_file()
        except OSError:
            continue

        if is_dir:
            if entry.name in excluded or (skip_dir is not None and skip_dir(entry.name)):
                continue
            yield entry, depth, True
            if max_depth is None or depth < max_depth:
                yield from _scan_dir(entry.path, depth + 1, max_depth, include_hidden, excluded, skip_dir)
        elif is_file:
            yield entry, depth, False


def iter_files(
    root: str | Path,
    *,
    max_depth: int | None = None,
    include_hidden: bool = False,
    exclude_dirs: Iterable[str] = (),
    skip_dir: Callable[[str], bool] | None = None,
) -> Iterator[tuple[os.DirEntry, int]]:
    """Files only, same pruning rules as scan()."""
    for entry, depth, is_dir in scan(
        root,
        max_depth=max_depth,
        include_hidden=include_hidden,
        exclude_dirs=exclude_dirs,
        skip_dir=skip_dir,
    ):
        if not is_dir:
            yield entry, depth


# ---------------------------------------------------------------------------
# Sorting
# ---------------------------------------------------------------------------


_SORT_KEYS: dict[str, Callable[[FileEntry], object]] = {
    "name": lambda e: e.name,
    "size": lambda e: e.size,
    "modified": lambda e: e.modified.timestamp() if e.modified else 0.0,
}


def sort_entries(entries: list[FileEntry], sort_by: str = "name", order: str = "asc") -> list[FileEntry]:
    """Stable sort; "desc" reverses the comparator, not the result."""
    return sorted(entries, key=_SORT_KEYS[sort_by], reverse=order == "desc")


# ---------------------------------------------------------------------------
# walk()
# ---------------------------------------------------------------------------


def file_entry(entry: os.DirEntry, root: str | Path, depth: int) -> FileEntry | None:
    """Build a file record, or None when the file vanished or cannot be stat'ed."""
    try:
        stats = entry.stat()
    except OSError:
        return None
    return FileEntry(
        name=entry.name,
        path=os.path.relpath(entry.path, root),
        size=stats.st_size,
        modified=datetime.fromtimestamp(stats.st_mtime),
        depth=depth,
        kind="file",
        extension=extension_of(entry.name),
    )


def walk(config: WalkConfig) -> WalkResult:
    root = Path(config.root)
    depth_limit = config.max_depth if config.recursive else 0
    wanted = set(config.file_types)

    result = WalkResult(root=root)
    for entry, depth, is_dir in scan(
        root,
        max_depth=depth_limit,
        include_hidden=config.include_hidden,
        exclude_dirs=config.exclude_dirs,
    ):
        if is_dir:
            result.directories.append(
                FileEntry(
                    name=entry.name,
                    path=os.path.relpath(entry.path, root),
                    depth=depth,
                    kind="directory",
                )
            )
            continue

        if wanted and extension_of(entry.name) not in wanted:
            continue
        record = file_entry(entry, root, depth)
        if record is None:
            continue
        result.files.append(record)
        result.total_size += record.size

    result.total_files = len(result.files)
    result.total_dirs = len(result.directories)
    result.files = sort_entries(result.files, config.sort_by, config.order)
    result.directories = sort_entries(result.directories, config.sort_by, config.order)

    logger.debug(
        "walk: root='{}' recursive={} max_depth={} → {} dir(s), {} file(s)",
        root, config.recursive, config.max_depth, result.total_dirs, result.total_files,
    )
    return result
