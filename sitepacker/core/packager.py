"""Assemble the final archive contents from a workspace."""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

from jinja2 import Environment, FileSystemLoader, select_autoescape

from ..errors import MissingEntryPointError
from .models import ARCHIVE_NAME, CONFIG_FILENAME, README_NAME, Workspace
from .templating import substitute

logger = logging.getLogger(__name__)

TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"


@dataclass(frozen=True, slots=True)
class PackageEntry:
    name: str
    content: str | bytes
    # None for generated entries such as the README.
    source_name: Optional[str] = None


@dataclass(slots=True)
class PackageManifest:
    entries: List[PackageEntry] = field(default_factory=list)

    def names(self) -> list[str]:
        return [entry.name for entry in self.entries]

    def collisions(self) -> list[str]:
        """Output names that more than one entry writes to."""
        counts = Counter(entry.name for entry in self.entries)
        return [name for name, count in counts.items() if count > 1]

    def files(self) -> Dict[str, str | bytes]:
        """Final name -> content mapping; a later entry replaces an earlier one."""
        result: Dict[str, str | bytes] = {}
        for entry in self.entries:
            result[entry.name] = entry.content
        return result


def _env(templates_dir: Path) -> Environment:
    return Environment(
        loader=FileSystemLoader(str(templates_dir)),
        autoescape=select_autoescape(["html", "xml"]),
        keep_trailing_newline=True,
    )


def render_readme(workspace: Workspace, archive_name: str = ARCHIVE_NAME, templates_dir: Path = TEMPLATES_DIR) -> str:
    entry = workspace.entry_point
    tpl = _env(templates_dir).get_template("README.md.j2")
    pages = [
        {"original": page.original_name, "output": page.output_name, "entry": page.is_entry_point}
        for page in workspace.pages
    ]
    return tpl.render(
        archive_name=archive_name,
        entry_point=entry.output_name if entry else None,
        pages=pages,
        asset_count=sum(1 for name in workspace.assets if name != CONFIG_FILENAME),
    )


def build_package(workspace: Workspace, archive_name: str = ARCHIVE_NAME) -> PackageManifest:
    """Return the ordered archive entries for ``workspace``.

    HTML pages get configuration baked in but keep their references to sibling
    files. Other assets are copied unchanged and the configuration file is left
    out. A deployment guide is appended last.
    """
    if workspace.entry_point is None:
        raise MissingEntryPointError(
            "Choose the main page (index.html) before preparing the archive."
        )

    manifest = PackageManifest()
    for name, asset in workspace.assets.items():
        if name == CONFIG_FILENAME:
            continue
        page = workspace.page_by_name(name)
        if page is not None:
            content: str | bytes = substitute(page.raw_content, workspace.config)
            out_name = page.output_name
        else:
            content = asset.as_bytes()
            out_name = name
        manifest.entries.append(PackageEntry(name=out_name, content=content, source_name=name))

    manifest.entries.append(PackageEntry(name=README_NAME, content=render_readme(workspace, archive_name)))

    for name in manifest.collisions():
        logger.warning("Several files are packaged as %s; the last one wins", name)
    return manifest
