"""Self-contained preview documents backed by revocable temporary files."""

from __future__ import annotations

import logging
import shutil
import tempfile
import threading
import uuid
from pathlib import Path
from typing import Mapping, Optional

from ..errors import StalePreviewError
from .inliner import inline
from .models import ConfigDocument, PageDocument, UploadedAsset
from .templating import substitute

logger = logging.getLogger(__name__)


class PreviewHandle:
    """Reference to one rendered preview; invalid once released."""

    __slots__ = ("id", "path", "_registry", "_released")

    def __init__(self, registry: "PreviewRegistry", handle_id: str, path: Path) -> None:
        self.id = handle_id
        self.path = path
        self._registry = registry
        self._released = False

    @property
    def released(self) -> bool:
        return self._released

    def read(self) -> str:
        self._check()
        return self.path.read_text(encoding="utf-8")

    def release(self) -> None:
        self._registry.release(self)

    def _check(self) -> None:
        if self._released:
            raise StalePreviewError(f"Preview {self.id} has been released")

    def __repr__(self) -> str:
        state = "released" if self._released else "live"
        return f"<PreviewHandle {self.id} {state}>"


class PreviewRegistry:
    """Owns the temporary directory and every live preview handle."""

    def __init__(self, root: Optional[str | Path] = None) -> None:
        self._owns_root = root is None
        self.root = Path(root) if root is not None else Path(tempfile.mkdtemp(prefix="sitepacker_preview_"))
        self.root.mkdir(parents=True, exist_ok=True)
        self._handles: dict[str, PreviewHandle] = {}
        self._lock = threading.Lock()

    def acquire(self, html: str) -> PreviewHandle:
        handle_id = uuid.uuid4().hex
        path = self.root / f"{handle_id}.html"
        path.write_text(html, encoding="utf-8")
        handle = PreviewHandle(self, handle_id, path)
        with self._lock:
            self._handles[handle_id] = handle
        return handle

    def release(self, handle: PreviewHandle) -> None:
        with self._lock:
            if self._handles.pop(handle.id, None) is None:
                return
        handle._released = True
        handle.path.unlink(missing_ok=True)

    def release_all(self) -> int:
        with self._lock:
            handles = list(self._handles.values())
            self._handles.clear()
        for handle in handles:
            handle._released = True
            handle.path.unlink(missing_ok=True)
        if handles:
            logger.debug("Released %d preview handle(s)", len(handles))
        return len(handles)

    @property
    def live(self) -> int:
        with self._lock:
            return len(self._handles)

    def close(self) -> None:
        self.release_all()
        if self._owns_root:
            shutil.rmtree(self.root, ignore_errors=True)

    def __enter__(self) -> "PreviewRegistry":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


def render_preview(
    page: PageDocument,
    config: Optional[ConfigDocument],
    assets: Mapping[str, UploadedAsset],
) -> str:
    """Substitute configuration first, then inline assets (scripts included)."""
    templated = substitute(page.raw_content, config)
    return inline(templated, assets, scripts=True)


def build_preview(
    page: PageDocument,
    config: Optional[ConfigDocument],
    assets: Mapping[str, UploadedAsset],
    registry: PreviewRegistry,
) -> PreviewHandle:
    return registry.acquire(render_preview(page, config, assets))
