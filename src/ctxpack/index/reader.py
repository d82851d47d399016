"""Read a project tree into source documents."""

from __future__ import annotations

import fnmatch
import logging
import os
from pathlib import Path

from ctxpack.config import ReaderConfig
from ctxpack.index.models import SourceDocument

logger = logging.getLogger("ctxpack.reader")

CODE_EXTENSIONS = {
    ".py", ".pyi", ".js", ".jsx", ".ts", ".tsx", ".java", ".c", ".h", ".cpp",
    ".hpp", ".cc", ".go", ".rs", ".php", ".rb", ".swift", ".cs", ".kt",
    ".html", ".css", ".scss", ".sh", ".sql",
}
DOC_EXTENSIONS = {".md", ".markdown", ".txt", ".rst", ".json", ".yaml", ".yml", ".toml"}


def classify_file(file_path: str) -> bool | None:
    """True for code, False for prose/config documents, None if not indexed."""
    ext = Path(file_path).suffix.lower()
    if ext in CODE_EXTENSIONS:
        return True
    if ext in DOC_EXTENSIONS:
        return False
    return None


def read_documents(root: str | Path, config: ReaderConfig | None = None) -> list[SourceDocument]:
    """Read every indexable file under ``root``.

    Paths in the result are POSIX-style and relative to ``root``. Files that
    are excluded, oversize, not valid UTF-8 or of an unknown type are skipped.
    """
    root = Path(root).resolve()
    config = config or ReaderConfig()

    docs: list[SourceDocument] = []
    for full_path in collect_files(root, config):
        rel_path = full_path.relative_to(root).as_posix()
        try:
            text = full_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            logger.debug(f"Skipping unreadable file {rel_path}: {e}")
            continue
        if not text.strip():
            continue
        docs.append(
            SourceDocument(
                source_path=rel_path,
                text=text,
                is_code=bool(classify_file(rel_path)),
            )
        )

    logger.info(f"Read {len(docs)} documents from {root}")
    return docs


def collect_files(root: Path, config: ReaderConfig) -> list[Path]:
    """Collect all indexable files, respecting exclusion patterns."""
    files = []
    max_size = config.max_file_size_kb * 1024

    gitignore_patterns = _read_gitignore(root)
    all_exclude = config.exclude_patterns + gitignore_patterns

    for dirpath, dirnames, filenames in os.walk(root):
        rel_dir = os.path.relpath(dirpath, root)

        dirnames[:] = [
            d
            for d in dirnames
            if not _should_exclude(os.path.join(rel_dir, d) if rel_dir != "." else d, all_exclude)
        ]

        for filename in filenames:
            rel_path = (
                os.path.join(rel_dir, filename) if rel_dir != "." else filename
            )

            if _should_exclude(rel_path, all_exclude):
                continue

            if classify_file(filename) is None:
                continue

            full_path = Path(dirpath) / filename
            try:
                if full_path.stat().st_size > max_size:
                    continue
            except OSError:
                continue

            files.append(full_path)

    return sorted(files)


def _should_exclude(path: str, patterns: list[str]) -> bool:
    """Check if a path matches any exclusion pattern."""
    path_parts = Path(path).parts
    for pattern in patterns:
        if fnmatch.fnmatch(path, pattern):
            return True
        for part in path_parts:
            if fnmatch.fnmatch(part, pattern):
                return True
    return False


def _read_gitignore(root: Path) -> list[str]:
    """Read .gitignore patterns from the project root."""
    gitignore = root / ".gitignore"
    if not gitignore.exists():
        return []

    patterns = []
    try:
        for line in gitignore.read_text().splitlines():
            line = line.strip()
            if line and not line.startswith("#") and not line.startswith("!"):
                patterns.append(line.rstrip("/"))
    except OSError:
        return []
    return patterns
