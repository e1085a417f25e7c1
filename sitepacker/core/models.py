"""Data models for the site packager."""

from __future__ import annotations

import json
import mimetypes
from dataclasses import dataclass, field, replace
from pathlib import PurePosixPath
from types import MappingProxyType
from typing import Any, Iterable, Iterator, Mapping, Optional, Tuple, TYPE_CHECKING

from ..errors import UnknownPageError

if TYPE_CHECKING:  # pragma: no cover
    from .preview import PreviewHandle


CONFIG_FILENAME = "_config.json"
ENTRY_POINT_NAME = "index.html"
README_NAME = "README.md"
ARCHIVE_NAME = "github-pages-site.zip"

TEXT_SUFFIXES = {".js", ".mjs", ".json", ".css", ".html", ".htm", ".txt", ".md"}


def guess_media_type(name: str) -> str:
    media_type, _ = mimetypes.guess_type(name)
    return media_type or "application/octet-stream"


def classify_text(name: str, media_type: str) -> bool:
    """Return True when an upload should be read as text rather than bytes."""
    media_type = (media_type or "").lower()
    if media_type.startswith("text/") or media_type.endswith("javascript"):
        return True
    if media_type == "application/json":
        return True
    return PurePosixPath(name).suffix.lower() in TEXT_SUFFIXES


@dataclass(frozen=True, slots=True)
class UploadedAsset:
    name: str
    content: str | bytes
    media_type: str
    # Bytes as uploaded; text content is a decoded view of them.
    raw: Optional[bytes] = field(default=None, compare=False, repr=False)

    @classmethod
    def from_bytes(cls, name: str, data: bytes, media_type: str = "") -> "UploadedAsset":
        media_type = media_type or guess_media_type(name)
        if classify_text(name, media_type):
            return cls(name=name, content=data.decode("utf-8", errors="replace"), media_type=media_type, raw=data)
        return cls(name=name, content=data, media_type=media_type, raw=data)

    @property
    def is_text(self) -> bool:
        return isinstance(self.content, str)

    @property
    def is_html(self) -> bool:
        if self.media_type == "text/html":
            return True
        return self.is_text and PurePosixPath(self.name).suffix.lower() in {".html", ".htm"}

    def as_bytes(self) -> bytes:
        if self.raw is not None:
            return self.raw
        if isinstance(self.content, bytes):
            return self.content
        return self.content.encode("utf-8")


class AssetStore(Mapping[str, UploadedAsset]):
    """Read-only, insertion ordered mapping of upload name to asset."""

    __slots__ = ("_items",)

    def __init__(self, assets: Iterable[UploadedAsset] = ()) -> None:
        items: dict[str, UploadedAsset] = {}
        for asset in assets:
            items[asset.name] = asset
        self._items = MappingProxyType(items)

    def __getitem__(self, name: str) -> UploadedAsset:
        return self._items[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __repr__(self) -> str:
        return f"AssetStore({list(self._items)!r})"

    def html_assets(self) -> list[UploadedAsset]:
        return [a for a in self._items.values() if a.is_html and a.name != CONFIG_FILENAME]


@dataclass(frozen=True, slots=True)
class ConfigDocument:
    """Parsed configuration plus the text the operator last entered.

    ``parsed`` keeps the last value that parsed successfully, so an invalid
    edit does not break substitution.
    """

    parsed: Optional[Mapping[str, Any]] = None
    raw_text: str = ""
    is_valid: bool = True
    error: Optional[str] = None

    def edit(self, text: str) -> "ConfigDocument":
        if not text.strip():
            return ConfigDocument(parsed=None, raw_text=text, is_valid=True)
        try:
            data = json.loads(text)
        except (ValueError, RecursionError) as exc:
            return replace(self, raw_text=text, is_valid=False, error=str(exc))
        if not isinstance(data, dict):
            return replace(
                self,
                raw_text=text,
                is_valid=False,
                error="Configuration must be a JSON object",
            )
        return ConfigDocument(parsed=data, raw_text=text, is_valid=True)

    def to_text(self) -> str:
        if self.raw_text:
            return self.raw_text
        if self.parsed is None:
            return ""
        return json.dumps(self.parsed, indent=2, ensure_ascii=False)


def parse_config(text: str) -> ConfigDocument:
    return ConfigDocument().edit(text)


@dataclass(frozen=True, slots=True)
class PageDocument:
    id: str
    original_name: str
    raw_content: str
    output_name: str
    is_entry_point: bool = False
    preview: Optional["PreviewHandle"] = field(default=None, compare=False)


@dataclass(frozen=True, slots=True)
class Workspace:
    """The current upload batch: assets, configuration and derived pages."""

    assets: AssetStore = field(default_factory=AssetStore)
    config: ConfigDocument = field(default_factory=ConfigDocument)
    pages: Tuple[PageDocument, ...] = ()
    generation: int = 0

    def page(self, page_id: str) -> PageDocument:
        for page in self.pages:
            if page.id == page_id:
                return page
        raise UnknownPageError(f"No page with id {page_id!r}")

    def page_by_name(self, original_name: str) -> Optional[PageDocument]:
        for page in self.pages:
            if page.original_name == original_name:
                return page
        return None

    @property
    def entry_point(self) -> Optional[PageDocument]:
        for page in self.pages:
            if page.is_entry_point:
                return page
        return None
