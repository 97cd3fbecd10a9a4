"""Permanent media storage.

Media references arrive from entity payloads in one of three shapes:

- an absolute ``http(s)://`` URL hosted elsewhere,
- a public path that already lives in the entity's category,
  ``/uploads/<category>/<name>``,
- a staged upload, ``/uploads/temp/<name>`` (or its bare filename).

:class:`StoragePromoter` classifies each reference and moves staged files into
``<public-root>/uploads/<category>/`` with a single rename. Paths with ``..``
segments or paths that land outside the expected root are rejected.
"""

from __future__ import annotations

import re
import time
import uuid
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from loguru import logger

from mediavault.config import MediavaultConfig
from mediavault.constants import DEFAULT_EXTENSION, TEMP_CATEGORY, UPLOADS_DIRNAME
from mediavault.exceptions import InvalidPath, PromotionFailed
from mediavault.security import is_safe_extension, validate_path_within_base
from mediavault.utils.paths import (
    ensure_dir,
    is_http_url,
    public_path,
    split_public_path,
)

_CATEGORY_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_-]{0,63}$")


class MediaKind(Enum):
    """How a media reference is handled on promotion."""

    EXTERNAL = "external"
    PERMANENT = "permanent"
    STAGED = "staged"


@dataclass(frozen=True)
class ClassifiedMedia:
    """A media reference after classification.

    ``relative`` holds the path segments below the category (PERMANENT) or
    the staged filename (STAGED); it is empty for EXTERNAL references.
    """

    kind: MediaKind
    raw: str
    relative: tuple[str, ...] = ()

    @property
    def key(self) -> str:
        """Identity used for de-duplication before any file is moved."""
        if self.kind is MediaKind.EXTERNAL:
            return self.raw.strip()
        return "/".join((self.kind.value, *self.relative))


@dataclass
class MediaChange:
    """Outcome of reconciling an entity's media list with what it stored before.

    ``created`` lists files moved into the category by this call, so a caller
    can discard them if its own write fails. ``obsolete`` lists previously
    stored files that are no longer referenced.
    """

    paths: list[str] = field(default_factory=list)
    created: list[str] = field(default_factory=list)
    obsolete: list[str] = field(default_factory=list)


def validate_category(category: str) -> str:
    """Check that a category is a single safe directory name."""
    if not isinstance(category, str) or not _CATEGORY_RE.match(category):
        raise InvalidPath(str(category), "category must be a simple directory name")
    if category.lower() == TEMP_CATEGORY:
        raise InvalidPath(category, "temp is not a permanent category")
    return category


class StoragePromoter:
    """Moves staged uploads into permanent, category-scoped storage."""

    def __init__(self, public_root: Path | str) -> None:
        self.public_root = Path(public_root)
        self.uploads_root = self.public_root / UPLOADS_DIRNAME
        self.temp_root = self.uploads_root / TEMP_CATEGORY

    @classmethod
    def from_config(cls, config: MediavaultConfig) -> StoragePromoter:
        return cls(config.storage.get_public_root())

    def category_root(self, category: str) -> Path:
        return self.uploads_root / validate_category(category)

    # ------------------------------------------------------------------
    # Classification
    # ------------------------------------------------------------------

    def classify(self, category: str, raw: str) -> ClassifiedMedia:
        """Classify a media reference for a category.

        Raises:
            InvalidPath: If the reference is empty, contains ``..`` or points
                into a root other than the category or the temp area
        """
        validate_category(category)
        if not raw or not raw.strip():
            raise InvalidPath(raw or "", "path is empty")

        if is_http_url(raw):
            return ClassifiedMedia(MediaKind.EXTERNAL, raw.strip())

        segments = split_public_path(raw)
        if ".." in segments:
            raise InvalidPath(raw, "parent directory segments are not allowed")
        if not segments:
            raise InvalidPath(raw, "path is empty")

        if len(segments) == 1:
            return ClassifiedMedia(MediaKind.STAGED, raw, (segments[0],))

        if segments[0].lower() != UPLOADS_DIRNAME or len(segments) < 3:
            raise InvalidPath(raw, "path is not under /uploads/")

        root = segments[1].lower()
        rest = tuple(segments[2:])
        if root == category.lower():
            return ClassifiedMedia(MediaKind.PERMANENT, raw, rest)
        if root == TEMP_CATEGORY:
            if len(rest) != 1:
                raise InvalidPath(raw, "staged uploads are not nested")
            return ClassifiedMedia(MediaKind.STAGED, raw, rest)

        raise InvalidPath(raw, f"path is not under /uploads/{category}/")

    # ------------------------------------------------------------------
    # Promotion
    # ------------------------------------------------------------------

    def promote(self, category: str, raw: str) -> str:
        """Promote a single media reference into a category.

        Args:
            category: Destination category, e.g. ``"companies"``
            raw: URL, permanent public path or staged path

        Returns:
            Public path (or the unchanged URL) to store on the entity

        Raises:
            InvalidPath: If the reference is not acceptable
            PromotionFailed: If the staged file is missing or cannot be moved
        """
        media = self.classify(category, raw)
        return self._apply(category, media)

    def promote_batch(self, category: str, entries: Sequence[str]) -> list[str]:
        """Promote an ordered list of media references.

        Entries are processed in order and de-duplicated by their resulting
        path, keeping the first occurrence. The first failure aborts the batch
        with :class:`PromotionFailed`; files already moved by the batch are
        renamed back into the temp area first.
        """
        return [path for path, _ in self._promote_all(category, entries)]

    def reconcile(
        self,
        category: str,
        entries: Sequence[str],
        existing: Iterable[str] = (),
    ) -> MediaChange:
        """Promote ``entries`` and diff them against previously stored paths."""
        previous: list[str] = []
        for value in existing:
            if not value:
                continue
            try:
                media = self.classify(category, value)
            except InvalidPath:
                logger.debug(f"Ignoring stored path outside {category}: {value!r}")
                continue
            if media.kind is MediaKind.PERMANENT:
                normalized = public_path(category, "/".join(media.relative))
                if normalized not in previous:
                    previous.append(normalized)

        change = MediaChange()
        for path, kind in self._promote_all(category, entries):
            change.paths.append(path)
            if kind is MediaKind.STAGED:
                change.created.append(path)

        retained = set(change.paths)
        change.obsolete = [path for path in previous if path not in retained]
        return change

    def _promote_all(
        self, category: str, entries: Sequence[str]
    ) -> list[tuple[str, MediaKind]]:
        results: list[tuple[str, MediaKind]] = []
        seen_paths: set[str] = set()
        by_key: dict[str, str] = {}
        moves: list[tuple[Path, Path]] = []

        for entry in entries:
            try:
                media = self.classify(category, entry)
                path = by_key.get(media.key)
                if path is None:
                    path = self._apply(category, media, moves)
                    by_key[media.key] = path
            except PromotionFailed:
                self._rollback(moves)
                raise
            except InvalidPath as e:
                self._rollback(moves)
                raise PromotionFailed(str(entry), e.reason, cause=e) from e

            if path in seen_paths:
                continue
            seen_paths.add(path)
            results.append((path, media.kind))

        return results

    def _apply(
        self,
        category: str,
        media: ClassifiedMedia,
        moves: list[tuple[Path, Path]] | None = None,
    ) -> str:
        if media.kind is MediaKind.EXTERNAL:
            return media.raw
        if media.kind is MediaKind.PERMANENT:
            self._resolve_permanent(category, media)
            return public_path(category, "/".join(media.relative))
        return self._move_staged(category, media, moves)

    def _move_staged(
        self,
        category: str,
        media: ClassifiedMedia,
        moves: list[tuple[Path, Path]] | None = None,
    ) -> str:
        filename = media.relative[-1]
        source = self.temp_root / filename
        try:
            source = validate_path_within_base(source, self.temp_root)
        except ValueError as e:
            raise InvalidPath(media.raw, "path escapes the temp area") from e

        if not source.is_file():
            raise PromotionFailed(media.raw, "staged file not found")

        destination_dir = ensure_dir(self.category_root(category))
        new_name = build_promoted_name(source.suffix)
        destination = destination_dir / new_name

        try:
            source.rename(destination)
        except FileNotFoundError as e:
            raise PromotionFailed(media.raw, "staged file not found", cause=e) from e
        except OSError as e:
            raise PromotionFailed(media.raw, "could not move staged file", cause=e) from e

        if moves is not None:
            moves.append((source, destination))
        promoted = public_path(category, new_name)
        logger.info(f"Promoted {filename} to {promoted}")
        return promoted

    def _rollback(self, moves: list[tuple[Path, Path]]) -> None:
        """Move files promoted by a failed batch back to their staged names."""
        for source, destination in reversed(moves):
            try:
                destination.rename(source)
            except OSError as e:
                logger.warning(f"Could not restore staged file {source.name}: {e}")
            else:
                logger.debug(f"Restored staged file {source.name}")
        moves.clear()

    # ------------------------------------------------------------------
    # Lookup and removal
    # ------------------------------------------------------------------

    def _resolve_permanent(self, category: str, media: ClassifiedMedia) -> Path:
        root = self.category_root(category)
        try:
            return validate_path_within_base(root.joinpath(*media.relative), root)
        except ValueError as e:
            raise InvalidPath(media.raw, f"path escapes /uploads/{category}/") from e

    def resolve(self, category: str, raw: str) -> Path:
        """Map a permanent public path to its absolute file location.

        Raises:
            InvalidPath: If the path is not a stored file of the category
        """
        media = self.classify(category, raw)
        if media.kind is not MediaKind.PERMANENT:
            raise InvalidPath(raw, f"not a stored {category} file")
        return self._resolve_permanent(category, media)

    def discard(self, category: str, paths: Iterable[str | None]) -> int:
        """Delete stored files that are no longer referenced.

        External URLs and paths outside the category are skipped and a file
        that is already gone is not an error.

        Returns:
            Number of files removed
        """
        removed = 0
        seen: set[str] = set()
        for value in paths:
            if not value or value in seen:
                continue
            seen.add(value)
            try:
                target = self.resolve(category, value)
            except InvalidPath:
                logger.debug(f"Not discarding {value!r}: outside {category}")
                continue
            try:
                target.unlink()
                removed += 1
            except FileNotFoundError:
                logger.debug(f"Already removed: {value}")
        if removed:
            logger.info(f"Discarded {removed} file(s) from {category}")
        return removed


def build_promoted_name(extension: str) -> str:
    """Build ``<timestamp_ms>-<uuid4><ext>`` for a promoted file."""
    ext = extension.lower() if is_safe_extension(extension) else DEFAULT_EXTENSION
    return f"{int(time.time() * 1000)}-{uuid.uuid4()}{ext}"
