"""
Context Digest Builder - Bounded summary of project declarations

Signatures are found with line patterns, not a parser: function and
class/struct/enum declarations, macros other than include guards, and
extern globals. Results are cached per project root for a short window.
"""

from __future__ import annotations

import logging
import os
import re
import time
from pathlib import Path
from typing import Callable, Iterable, Protocol

from ..models.digest import ContextDigest

logger = logging.getLogger(__name__)

DEFAULT_MAX_CHARS = 4000
DEFAULT_TTL_SECONDS = 30
MAX_SIGNATURES_PER_FILE = 40
MAX_SIGNATURE_LENGTH = 160
MAX_SCANNED_LINE = 300

SOURCE_EXTENSIONS = {".c", ".cc", ".cpp", ".cxx", ".h", ".hh", ".hpp", ".hxx", ".inl"}
SKIPPED_DIRS = {
    ".git", ".svn", ".hg", ".vs", "out", "build", "bin", "obj",
    "Debug", "Release", "node_modules", "__pycache__",
}

_CONTROL_KEYWORDS = {
    "if", "for", "while", "switch", "return", "else", "sizeof", "catch",
    "do", "case", "delete", "new", "throw", "defined",
}

_FUNCTION_RE = re.compile(
    r"^(?!\s*(?:#|//|/\*|\*|return\b|else\b|typedef\b|new\b|delete\b|throw\b|case\b|goto\b))"
    r"\s*(?:[A-Za-z_][\w:<>,*&\s]*?[\s*&])"
    r"(?P<name>~?[A-Za-z_][\w:]*)\s*\((?P<args>[^;{}()]*(?:\([^()]*\)[^;{}()]*)*)\)"
    r"\s*(?:const\s*)?(?:override\s*)?(?:noexcept\s*)?(?:=\s*0\s*)?[;{]?\s*$"
)
_TYPE_RE = re.compile(r"^\s*(?:typedef\s+)?(?:class|struct|union)\s+(?:__declspec\([^)]*\)\s+)?(?P<name>[A-Za-z_]\w*)")
_ENUM_RE = re.compile(r"^\s*(?:typedef\s+)?enum\b(?:\s+class)?(?:\s+(?P<name>[A-Za-z_]\w*))?")
_DEFINE_RE = re.compile(r"^\s*#\s*define\s+(?P<name>[A-Za-z_]\w*)(?P<rest>.*)$")
_IFNDEF_RE = re.compile(r"^\s*#\s*ifndef\s+(?P<name>[A-Za-z_]\w*)")
_EXTERN_RE = re.compile(r'^\s*extern\s+(?!"C")[^;(]+;')
_GUARD_NAME_RE = re.compile(r"^_*[A-Z0-9_]*_(?:H|HH|HPP|HXX|INL|INCLUDED)_*$")


class ProjectSource(Protocol):
    """Project collaborator the builder reads through"""

    def list_source_files(self, root: str) -> Iterable[str]: ...

    def read_file(self, path: str) -> str: ...


class FileSystemProject:
    """Walks the project directory on disk"""

    def list_source_files(self, root: str) -> list[str]:
        found: list[str] = []
        for dirpath, dirnames, filenames in os.walk(root):
            dirnames[:] = sorted(d for d in dirnames if d not in SKIPPED_DIRS and not d.startswith("."))
            for name in sorted(filenames):
                if Path(name).suffix.lower() in SOURCE_EXTENSIONS:
                    found.append(os.path.join(dirpath, name))
        return found

    def read_file(self, path: str) -> str:
        with open(path, encoding="utf-8", errors="replace") as f:
            return f.read()


def _clean(line: str) -> str:
    line = re.sub(r"\s+", " ", line.strip())
    line = line.rstrip("{").rstrip()
    if len(line) > MAX_SIGNATURE_LENGTH:
        line = line[: MAX_SIGNATURE_LENGTH - 3] + "..."
    return line


def is_include_guard(name: str, body: str, guarded: str | None) -> bool:
    if _GUARD_NAME_RE.match(name):
        return True
    return not body.strip() and name == guarded


def extract_signatures(source: str) -> list[str]:
    """Declaration lines worth showing to the model, in file order"""
    signatures: list[str] = []
    guarded: str | None = None
    in_block_comment = False

    for raw in source.splitlines():
        line = raw.strip()
        if in_block_comment:
            if "*/" in line:
                in_block_comment = False
            continue
        if line.startswith("/*") and "*/" not in line:
            in_block_comment = True
            continue
        if not line or line.startswith("//"):
            continue

        m = _IFNDEF_RE.match(line)
        if m:
            guarded = m.group("name")
            continue
        m = _DEFINE_RE.match(line)
        if m:
            if not is_include_guard(m.group("name"), m.group("rest"), guarded):
                signatures.append(_clean(line))
            continue
        if line.startswith("#"):
            continue

        if _EXTERN_RE.match(line):
            signatures.append(_clean(line))
        elif _ENUM_RE.match(line):
            signatures.append(_clean(line))
        elif _TYPE_RE.match(line):
            signatures.append(_clean(line))
        elif len(line) <= MAX_SCANNED_LINE:
            m = _FUNCTION_RE.match(line)
            if m and m.group("name").split("::")[-1] not in _CONTROL_KEYWORDS:
                signatures.append(_clean(line))

        if len(signatures) >= MAX_SIGNATURES_PER_FILE:
            break
    return signatures


# Process-wide: root -> last digest
_DIGEST_CACHE: dict[str, ContextDigest] = {}


class ContextDigestBuilder:
    """Builds and caches the per-project declaration digest"""

    def __init__(
        self,
        project: ProjectSource | None = None,
        max_chars: int = DEFAULT_MAX_CHARS,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        cache: dict[str, ContextDigest] | None = None,
    ):
        self.project = project or FileSystemProject()
        self.max_chars = max_chars
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._cache = _DIGEST_CACHE if cache is None else cache

    def get_digest(self, root: str | None) -> str:
        """Digest text for `root`, rebuilt only when absent or expired"""
        digest = self.get(root)
        return digest.text if digest else ""

    def get(self, root: str | None) -> ContextDigest | None:
        if not root:
            return None
        key = str(Path(root).resolve())
        cached = self._cache.get(key)
        now = self._clock()
        if cached is not None and now - cached.built_at < self.ttl_seconds:
            return cached
        digest = self.build(root, now)
        self._cache[key] = digest
        return digest

    def build(self, root: str, built_at: float | None = None) -> ContextDigest:
        """Scan `root` without consulting the cache"""
        built_at = self._clock() if built_at is None else built_at
        try:
            paths = list(self.project.list_source_files(root))
        except OSError as e:
            logger.debug("Cannot list sources under %s: %s", root, e)
            paths = []

        sections: list[str] = []
        scanned = 0
        for path in paths:
            try:
                source = self.project.read_file(path)
            except (OSError, UnicodeError, ValueError) as e:
                logger.debug("Skipping unreadable file %s: %s", path, e)
                continue
            scanned += 1
            signatures = extract_signatures(source)
            if signatures:
                sections.append(self._format_section(root, path, signatures))

        text = "\n".join(sections)
        if len(text) > self.max_chars:
            text = text[: self.max_chars] + f"\n... (truncated; {scanned} files scanned)"
        logger.debug("Built context digest for %s: %d files, %d chars", root, scanned, len(text))
        return ContextDigest(text=text, built_at=built_at, files_scanned=scanned)

    @staticmethod
    def _format_section(root: str, path: str, signatures: list[str]) -> str:
        try:
            rel = os.path.relpath(path, root)
        except ValueError:
            rel = path
        rel = rel.replace(os.sep, "/")
        lines = [f"// {rel}"]
        lines.extend(f"  {sig}" for sig in signatures)
        return "\n".join(lines)
