"""Workspace construction, page edits and the session that owns them."""

from __future__ import annotations

import logging
import threading
import uuid
from dataclasses import replace
from typing import Callable, Iterable, Mapping, Optional

from ..errors import ConfigGenerationError, PageLockedError
from .models import (
    CONFIG_FILENAME,
    ENTRY_POINT_NAME,
    AssetStore,
    ConfigDocument,
    PageDocument,
    UploadedAsset,
    Workspace,
    parse_config,
)
from .packager import PackageManifest, build_package
from .preview import PreviewRegistry, build_preview

logger = logging.getLogger(__name__)


def _config_from_assets(assets: AssetStore) -> ConfigDocument:
    asset = assets.get(CONFIG_FILENAME)
    if asset is None:
        return ConfigDocument()
    text = asset.content if isinstance(asset.content, str) else asset.as_bytes().decode("utf-8", errors="replace")
    config = parse_config(text)
    if not config.is_valid:
        logger.warning("%s is not valid configuration: %s", CONFIG_FILENAME, config.error)
    return config


def _with_previews(
    pages: Iterable[PageDocument],
    config: ConfigDocument,
    assets: AssetStore,
    registry: Optional[PreviewRegistry],
) -> tuple[PageDocument, ...]:
    if registry is None:
        return tuple(replace(page, preview=None) for page in pages)
    built: list[PageDocument] = []
    try:
        for page in pages:
            built.append(replace(page, preview=build_preview(page, config, assets, registry)))
    except Exception:
        # Handles acquired for this partial build have no owner yet.
        for page in built:
            registry.release(page.preview)
        raise
    return tuple(built)


def build_workspace(
    assets: Iterable[UploadedAsset],
    registry: Optional[PreviewRegistry] = None,
    generation: int = 0,
) -> Workspace:
    store = AssetStore(assets)
    config = _config_from_assets(store)
    pages = [
        PageDocument(
            id=f"{asset.name}-{uuid.uuid4().hex[:8]}",
            original_name=asset.name,
            raw_content=asset.content if isinstance(asset.content, str) else asset.as_bytes().decode("utf-8", errors="replace"),
            output_name=asset.name,
        )
        for asset in store.html_assets()
    ]
    return Workspace(
        assets=store,
        config=config,
        pages=_with_previews(pages, config, store, registry),
        generation=generation,
    )


def set_entry_point(workspace: Workspace, page_id: str) -> Workspace:
    """Make ``page_id`` the only entry point and name it ``index.html``.

    A page that loses the flag gets its original name back.
    """
    target = workspace.page(page_id)
    pages = []
    for page in workspace.pages:
        if page.id == target.id:
            page = replace(page, is_entry_point=True, output_name=ENTRY_POINT_NAME)
        elif page.is_entry_point:
            page = replace(page, is_entry_point=False, output_name=page.original_name)
        pages.append(page)
    return replace(workspace, pages=tuple(pages))


def rename_page(workspace: Workspace, page_id: str, output_name: str) -> Workspace:
    target = workspace.page(page_id)
    if target.is_entry_point:
        raise PageLockedError(f"{target.original_name} is the entry point and is always {ENTRY_POINT_NAME}")
    output_name = output_name.strip()
    if not output_name:
        raise ValueError("Output name cannot be empty")
    pages = tuple(
        replace(page, output_name=output_name) if page.id == target.id else page
        for page in workspace.pages
    )
    return replace(workspace, pages=pages)


def apply_suggestions(workspace: Workspace, names: Mapping[str, str]) -> Workspace:
    """Apply ``page id -> output name``; the entry point keeps its fixed name."""
    pages = []
    for page in workspace.pages:
        new_name = names.get(page.id)
        if new_name and not page.is_entry_point:
            page = replace(page, output_name=new_name)
        pages.append(page)
    return replace(workspace, pages=tuple(pages))


def with_config(workspace: Workspace, config: ConfigDocument) -> Workspace:
    return replace(workspace, config=config)


class Session:
    """Holds the current workspace and swaps it as a whole on every change.

    Preview handles issued for a workspace are released whenever the pages
    they were rendered from are superseded.
    """

    def __init__(self, registry: Optional[PreviewRegistry] = None) -> None:
        self.registry = registry if registry is not None else PreviewRegistry()
        self._lock = threading.RLock()
        self._workspace = Workspace()

    def snapshot(self) -> Workspace:
        with self._lock:
            return self._workspace

    @property
    def workspace(self) -> Workspace:
        return self.snapshot()

    def _swap(self, workspace: Workspace) -> Workspace:
        old, self._workspace = self._workspace, workspace
        keep = {page.preview.id for page in workspace.pages if page.preview is not None}
        for page in old.pages:
            if page.preview is not None and page.preview.id not in keep:
                self.registry.release(page.preview)
        return workspace

    def load(self, assets: Iterable[UploadedAsset]) -> Workspace:
        """Replace the whole workspace with a new upload batch."""
        assets = list(assets)
        with self._lock:
            old = self._workspace
            new = build_workspace(assets, self.registry, generation=old.generation + 1)
            logger.info(
                "Loaded %d file(s), %d page(s) (generation %d)",
                len(new.assets),
                len(new.pages),
                new.generation,
            )
            return self._swap(new)

    def _rebuild_previews(self, workspace: Workspace) -> Workspace:
        pages = _with_previews(workspace.pages, workspace.config, workspace.assets, self.registry)
        return replace(workspace, pages=pages)

    def set_entry_point(self, page_id: str) -> Workspace:
        with self._lock:
            return self._swap(set_entry_point(self._workspace, page_id))

    def rename(self, page_id: str, output_name: str) -> Workspace:
        with self._lock:
            return self._swap(rename_page(self._workspace, page_id, output_name))

    def apply_suggestions(self, names: Mapping[str, str]) -> Workspace:
        with self._lock:
            return self._swap(apply_suggestions(self._workspace, names))

    def edit_config(self, text: str) -> ConfigDocument:
        """Apply edited configuration text and refresh every preview.

        Invalid text is recorded on the returned document; the previous values
        keep being used for substitution.
        """
        with self._lock:
            config = self._workspace.config.edit(text)
            if not config.is_valid:
                logger.info("Configuration edit is not valid JSON: %s", config.error)
            self._swap(self._rebuild_previews(with_config(self._workspace, config)))
            return config

    def apply_generated_config(self, generate: Callable[[], str]) -> ConfigDocument:
        """Run a config generator and adopt its result only if it is a JSON object."""
        text = generate()
        config = parse_config(text)
        if not config.is_valid or config.parsed is None:
            raise ConfigGenerationError(f"Generated configuration is not a JSON object: {config.error}")
        with self._lock:
            self._swap(self._rebuild_previews(with_config(self._workspace, config)))
        return config

    def package(self, archive_name: Optional[str] = None) -> PackageManifest:
        workspace = self.snapshot()
        if archive_name is None:
            return build_package(workspace)
        return build_package(workspace, archive_name)

    def close(self) -> None:
        with self._lock:
            self._swap(Workspace())
        self.registry.close()

    def __enter__(self) -> "Session":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
