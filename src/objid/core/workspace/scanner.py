"""
Source object scanner.

Walks a project directory and extracts object declaration headers of the form

    <object-type> <id> <name>

e.g. `table 50100 "Customer Rating"` or `codeunit 50101 RatingMgt`, one
ObjectRecord per matching line.

The scanner is a pure extraction step: it does not know about configured
ranges and it never caches. Availability and collision checks must see the
working tree as it is at call time, so every call re-reads the files.

Example:
    >>> scanner = SourceObjectScanner()
    >>> records = scanner.scan(Path("~/src/MyApp"), object_types=["table"])
    >>> [(r.id, r.name) for r in records]
    [(50100, 'Customer Rating')]
"""

from __future__ import annotations

import logging
import os
import re
from collections.abc import Iterable
from pathlib import Path

import pathspec

from objid.core.workspace.models import OBJECT_TYPES, ObjectRecord
from objid.core.workspace.project import normalize_project_path

logger = logging.getLogger(__name__)

DEFAULT_INCLUDE: tuple[str, ...] = ("**/*.al",)
DEFAULT_EXCLUDE: tuple[str, ...] = ("**/.alpackages/**", "**/.snapshots/**")

_HEADER = re.compile(
    r"^\s*(?P<type>" + "|".join(OBJECT_TYPES) + r")\s+(?P<id>\d+)\b"
    r'(?:[ \t]+(?:"(?P<quoted>[^"\r\n]*)"|(?P<bare>[^\s"{]+)))?',
    re.IGNORECASE,
)


class SourceDecodeError(UnicodeDecodeError):
    """A UnicodeDecodeError that remembers which source file failed."""

    def __init__(self, path: Path, error: UnicodeDecodeError) -> None:
        super().__init__(error.encoding, error.object, error.start, error.end, error.reason)
        self.path = path

    def __str__(self) -> str:
        return f"{super().__str__()} ({self.path})"


def parse_content(content: str, file: Path) -> list[ObjectRecord]:
    """
    Extract object declarations from source text.

    Args:
        content: File content
        file: Path recorded on each ObjectRecord

    Returns:
        One record per declaration header line, in file order
    """
    records = []
    for line_number, line in enumerate(content.splitlines(), start=1):
        match = _HEADER.match(line)
        if not match:
            continue
        name = match.group("quoted")
        if name is None:
            name = match.group("bare") or ""
        records.append(
            ObjectRecord(
                type=match.group("type").lower(),
                id=int(match.group("id")),
                name=name.strip(),
                file=file,
                line=line_number,
            )
        )
    return records


def parse_file(path: Path) -> list[ObjectRecord]:
    """
    Extract object declarations from one file.

    Raises:
        OSError: If the file cannot be read
        SourceDecodeError: If the file is not valid UTF-8
    """
    try:
        content = path.read_text(encoding="utf-8-sig")
    except UnicodeDecodeError as e:
        raise SourceDecodeError(path, e) from e
    return parse_content(content, path)


class SourceObjectScanner:
    """
    Finds source files in a project and extracts their object declarations.

    Include and exclude patterns use gitignore syntax, matched against paths
    relative to the project root.

    Attributes:
        include: Patterns selecting source files
        exclude: Patterns removing files from the selection
    """

    def __init__(
        self,
        include: Iterable[str] | None = None,
        exclude: Iterable[str] | None = None,
    ) -> None:
        self.include = tuple(include) if include else DEFAULT_INCLUDE
        self.exclude = tuple(exclude) if exclude is not None else DEFAULT_EXCLUDE
        self._include_spec = pathspec.GitIgnoreSpec.from_lines(self.include)
        self._exclude_spec = pathspec.GitIgnoreSpec.from_lines(self.exclude)

    def find_source_files(self, root: Path) -> list[Path]:
        """
        List source files under root.

        Returns:
            Paths relative to root, sorted
        """
        files = []
        for dirpath, dirnames, filenames in os.walk(root):
            dirnames.sort()
            base = Path(dirpath)
            for filename in filenames:
                relative = (base / filename).relative_to(root)
                rel_posix = relative.as_posix()
                if not self._include_spec.match_file(rel_posix):
                    continue
                if self._exclude_spec.match_file(rel_posix):
                    continue
                files.append(relative)
        return sorted(files)

    def scan(
        self,
        project_path: Path | str,
        object_types: Iterable[str] | None = None,
    ) -> list[ObjectRecord]:
        """
        Scan a project for object declarations.

        Args:
            project_path: Project directory (or its app.json)
            object_types: If given, only records of these types are returned

        Returns:
            Records from every matched file, in file then line order

        Raises:
            OSError: If a matched file cannot be read
        """
        root = normalize_project_path(project_path)
        wanted = {t.lower() for t in object_types} if object_types else None

        records: list[ObjectRecord] = []
        files = self.find_source_files(root)
        for relative in files:
            found = parse_file(root / relative)
            if wanted is not None:
                found = [r for r in found if r.type in wanted]
            records.extend(found)

        logger.debug("Scanned %d files under %s: %d objects", len(files), root, len(records))
        return records
