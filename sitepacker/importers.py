"""Read an upload batch from files, folders and zip archives."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import Iterable, Iterator, Literal
from zipfile import BadZipFile, ZipFile

from .core.models import UploadedAsset
from .errors import BatchReadError

logger = logging.getLogger(__name__)

SourceType = Literal["folder", "zip", "file"]

MAX_FILE_SIZE = 10 * 1024 * 1024  # 10 MiB safety cap


@dataclass(slots=True)
class ImportOptions:
    ignore_hidden: bool = True
    # Treat .zip sources as archives to unpack instead of uploading them as files.
    expand_zips: bool = True
    max_file_size: int = MAX_FILE_SIZE


@dataclass(slots=True)
class UploadBatch:
    assets: list[UploadedAsset] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def names(self) -> list[str]:
        return [asset.name for asset in self.assets]


def sniff_source_type(path: Path, options: ImportOptions | None = None) -> SourceType:
    path = Path(path)
    if path.is_dir():
        return "folder"
    expand = options.expand_zips if options else True
    if expand and path.is_file() and path.suffix.lower() == ".zip":
        return "zip"
    return "file"


def read_batch(sources: Iterable[str | Path], options: ImportOptions | None = None) -> UploadBatch:
    """Read every source into one batch.

    A file that cannot be read aborts the whole batch with ``BatchReadError``.
    """
    options = options or ImportOptions()
    batch = UploadBatch()
    seen: dict[str, int] = {}

    for source in sources:
        source_path = Path(source)
        if not source_path.exists():
            raise BatchReadError(f"File not found: {source_path}")
        source_type = sniff_source_type(source_path, options)
        if source_type == "zip":
            items: Iterable[tuple[str, bytes]] = _iter_zip(source_path, options, batch)
        elif source_type == "folder":
            items = _iter_folder(source_path, options, batch)
        else:
            items = _iter_single(source_path, options, batch)

        for name, data in items:
            asset = UploadedAsset.from_bytes(name, data)
            if name in seen:
                batch.warnings.append(f"Duplicate file name {name}; the later copy is used")
                batch.assets[seen[name]] = asset
                continue
            seen[name] = len(batch.assets)
            batch.assets.append(asset)

    for warning in batch.warnings:
        logger.warning(warning)
    return batch


def _read(path: Path, label: str) -> bytes:
    try:
        return path.read_bytes()
    except OSError as exc:
        raise BatchReadError(f"Unable to read {label}: {exc}") from exc


def _too_large(size: int, label: str, options: ImportOptions, batch: UploadBatch) -> bool:
    if size > options.max_file_size:
        batch.warnings.append(f"Skipped large file (over {options.max_file_size} bytes): {label}")
        return True
    return False


def _iter_single(path: Path, options: ImportOptions, batch: UploadBatch) -> Iterator[tuple[str, bytes]]:
    try:
        size = path.stat().st_size
    except OSError as exc:
        raise BatchReadError(f"Unable to stat {path}: {exc}") from exc
    if _too_large(size, path.name, options, batch):
        return
    yield path.name, _read(path, path.name)


def _iter_folder(base: Path, options: ImportOptions, batch: UploadBatch) -> Iterator[tuple[str, bytes]]:
    base = Path(base)
    for path in sorted(base.rglob("*")):
        relative = path.relative_to(base)
        if options.ignore_hidden and _is_hidden(relative):
            continue
        if path.is_symlink():
            try:
                resolved = path.resolve()
            except OSError:
                batch.warnings.append(f"Skipped unreadable symlink: {relative.as_posix()}")
                continue
            if base.resolve() not in resolved.parents:
                batch.warnings.append(f"Skipped symlink outside root: {relative.as_posix()}")
                continue
        if not path.is_file():
            continue
        if _too_large(path.stat().st_size, relative.as_posix(), options, batch):
            continue
        yield path.name, _read(path, relative.as_posix())


def _iter_zip(path: Path, options: ImportOptions, batch: UploadBatch) -> Iterator[tuple[str, bytes]]:
    try:
        with ZipFile(path) as zf:
            for member in zf.infolist():
                if member.is_dir():
                    continue
                normalized = PurePosixPath(member.filename.replace("\\", "/"))
                if ".." in normalized.parts:
                    batch.warnings.append(f"Skipping unsafe zip entry: {member.filename}")
                    continue
                if options.ignore_hidden and _is_hidden(normalized):
                    continue
                if _too_large(member.file_size, member.filename, options, batch):
                    continue
                yield normalized.name, zf.read(member)
    except (BadZipFile, OSError) as exc:
        raise BatchReadError(f"Failed to read zip {path.name}: {exc}") from exc


def _is_hidden(relative: PurePosixPath | Path) -> bool:
    return any(part.startswith(".") for part in relative.parts)
