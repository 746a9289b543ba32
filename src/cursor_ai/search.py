# search.py
# Cross-file text search and search/replace, built on the walker.
#
# Files are read and written one at a time. A file that cannot be read as
# UTF-8 text is skipped without aborting the run. Newlines are preserved
# byte-for-byte on rewrite.

import os
from pathlib import Path
from typing import Iterable

from loguru import logger

from cursor_ai.matcher import extension_of
from cursor_ai.models import (
    DEFAULT_EXCLUDE_DIRS,
    DEFAULT_REPLACE_TYPES,
    FileChange,
    ReplaceResult,
    SearchHit,
)
from cursor_ai.walker import HIDDEN_MARKER, iter_files


def _read_text(path: str) -> str | None:
    try:
        with open(path, encoding="utf-8", newline="") as fh:
            return fh.read()
    except (OSError, UnicodeDecodeError) as exc:
        logger.debug("skipping unreadable file '{}': {}", path, exc)
        return None


def _write_text(path: str, content: str) -> None:
    with open(path, "w", encoding="utf-8", newline="") as fh:
        fh.write(content)


# ---------------------------------------------------------------------------
# Search / replace
# ---------------------------------------------------------------------------


def apply(
    directory: str | Path,
    search_text: str,
    replace_text: str | None = None,
    *,
    file_types: Iterable[str] = DEFAULT_REPLACE_TYPES,
    exclude_dirs: Iterable[str] = DEFAULT_EXCLUDE_DIRS,
    dry_run: bool = True,
) -> ReplaceResult:
    """
    Count literal occurrences of search_text in every matching file under
    directory and, unless dry_run, replace them with replace_text.

    Hidden files are included. Only files with at least one occurrence are
    recorded in the result. Substitution is literal, so the replacement
    count equals the match count of every file rewritten. A file that
    cannot be written is recorded with was_replaced=False and the walk
    continues.
    """
    if not search_text:
        raise ValueError("Search text is required")

    wanted = set(file_types)
    result = ReplaceResult(dry_run=dry_run)
    will_write = not dry_run and replace_text is not None

    for entry, _depth in iter_files(directory, include_hidden=True, exclude_dirs=exclude_dirs):
        if wanted and extension_of(entry.name) not in wanted:
            continue
        content = _read_text(entry.path)
        if content is None:
            continue

        count = content.count(search_text)
        if count == 0:
            continue

        result.files_processed += 1
        result.matches_found += count
        rel = os.path.relpath(entry.path, directory)

        replaced = False
        if will_write:
            try:
                _write_text(entry.path, content.replace(search_text, replace_text))
            except OSError as exc:
                logger.warning("search/replace: could not write '{}', left unchanged: {}", entry.path, exc)
            else:
                replaced = True
                result.replacements += count
        result.changes.append(FileChange(file=rel, match_count=count, was_replaced=replaced))

    logger.info(
        "search/replace: dir='{}' files={} matches={} replacements={} dry_run={}",
        directory, result.files_processed, result.matches_found, result.replacements, dry_run,
    )
    return result


def scan(
    directory: str | Path,
    search_text: str,
    *,
    file_types: Iterable[str] = DEFAULT_REPLACE_TYPES,
    exclude_dirs: Iterable[str] = DEFAULT_EXCLUDE_DIRS,
) -> ReplaceResult:
    """Dry-run apply(): match counts per file, nothing written."""
    return apply(
        directory,
        search_text,
        None,
        file_types=file_types,
        exclude_dirs=exclude_dirs,
        dry_run=True,
    )


# ---------------------------------------------------------------------------
# Line search
# ---------------------------------------------------------------------------


def _skip_search_dir(name: str) -> bool:
    return name.startswith(HIDDEN_MARKER) or name == "node_modules"


def search_lines(
    pattern: str,
    directory: str | Path = ".",
    file_extension: str | None = None,
) -> list[SearchHit]:
    """Every line containing pattern, in traversal order."""
    if not pattern:
        raise ValueError("Search pattern is required")

    hits: list[SearchHit] = []
    for entry, _depth in iter_files(directory, include_hidden=True, skip_dir=_skip_search_dir):
        if file_extension and not entry.name.endswith(file_extension):
            continue
        content = _read_text(entry.path)
        if content is None:
            continue
        rel = os.path.relpath(entry.path, directory)
        for number, line in enumerate(content.split("\n"), 1):
            if pattern in line:
                hits.append(SearchHit(file=rel, line=number, content=line.strip()))

    logger.debug("search_lines: '{}' in '{}' → {} hit(s)", pattern, directory, len(hits))
    return hits
