from __future__ import annotations

import io
import sys
from pathlib import Path
from zipfile import ZipFile

import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

from sitepacker.core.models import CONFIG_FILENAME, ENTRY_POINT_NAME, README_NAME, UploadedAsset
from sitepacker.core.packager import build_package, render_readme
from sitepacker.core.storage import archive_bytes, load_config, save_config, write_archive
from sitepacker.core.workspace import build_workspace, rename_page, set_entry_point
from sitepacker.errors import MissingEntryPointError

LOGO = b"\x89PNG\r\n\x1a\n\x00\x01"


def _workspace():
    return build_workspace(
        [
            UploadedAsset("landing.html", "<link rel='stylesheet' href='style.css'><h1>{{ brand }}</h1>", "text/html"),
            UploadedAsset("contact.html", "<a href='{{ links.mail }}'>mail</a>", "text/html"),
            UploadedAsset("style.css", "h1{}", "text/css"),
            UploadedAsset("logo.png", LOGO, "image/png"),
            UploadedAsset(CONFIG_FILENAME, '{"brand": "Acme", "links": {"mail": "mailto:a@b.c"}}', "application/json"),
        ]
    )


def test_package_requires_entry_point() -> None:
    with pytest.raises(MissingEntryPointError):
        build_package(_workspace())


def test_package_contents() -> None:
    ws = _workspace()
    ws = set_entry_point(ws, ws.pages[0].id)
    ws = rename_page(ws, ws.pages[1].id, "get-in-touch.html")
    manifest = build_package(ws)

    assert manifest.names() == [ENTRY_POINT_NAME, "get-in-touch.html", "style.css", "logo.png", README_NAME]
    files = manifest.files()
    assert CONFIG_FILENAME not in files
    # Packaged pages keep their sibling references.
    assert files[ENTRY_POINT_NAME] == "<link rel='stylesheet' href='style.css'><h1>Acme</h1>"
    assert files["get-in-touch.html"] == "<a href='mailto:a@b.c'>mail</a>"
    assert files["logo.png"] == LOGO
    assert files["style.css"] == b"h1{}"
    assert manifest.collisions() == []


def test_package_keeps_non_utf8_assets_byte_for_byte(tmp_path: Path) -> None:
    latin1 = "p:after{content:'café'}".encode("latin-1")
    ws = build_workspace(
        [
            UploadedAsset.from_bytes("index.html", b"<link rel='stylesheet' href='s.css'>"),
            UploadedAsset.from_bytes("s.css", latin1),
        ]
    )
    assert ws.assets["s.css"].is_text
    ws = set_entry_point(ws, ws.pages[0].id)
    manifest = build_package(ws)
    assert manifest.files()["s.css"] == latin1

    with ZipFile(io.BytesIO(archive_bytes(manifest))) as zf:
        assert zf.read("s.css") == latin1


def test_package_name_collision_is_last_write_wins() -> None:
    ws = _workspace()
    ws = set_entry_point(ws, ws.pages[0].id)
    ws = rename_page(ws, ws.pages[1].id, "style.css")
    manifest = build_package(ws)

    assert manifest.collisions() == ["style.css"]
    assert manifest.files()["style.css"] == b"h1{}"
    assert len(manifest.files()) == len(manifest.entries) - 1


def test_readme_mentions_entry_point_and_renames() -> None:
    ws = _workspace()
    ws = set_entry_point(ws, ws.pages[0].id)
    text = render_readme(ws, archive_name="site.zip")
    assert "site.zip" in text
    assert "`index.html` (from `landing.html`) - main page" in text
    assert "4 file(s)" in text
    assert "github.com/new" in text


def test_archive_round_trip(tmp_path: Path) -> None:
    ws = _workspace()
    ws = set_entry_point(ws, ws.pages[1].id)
    manifest = build_package(ws)
    target = write_archive(tmp_path / "out" / "site.zip", manifest)

    with ZipFile(target) as zf:
        assert sorted(zf.namelist()) == sorted(["landing.html", ENTRY_POINT_NAME, "style.css", "logo.png", README_NAME])
        assert zf.read("logo.png") == LOGO
        assert zf.read(ENTRY_POINT_NAME).decode("utf-8") == "<a href='mailto:a@b.c'>mail</a>"
    with ZipFile(io.BytesIO(archive_bytes(manifest))) as zf:
        assert README_NAME in zf.namelist()


def test_config_save_and_load(tmp_path: Path) -> None:
    ws = _workspace()
    path = tmp_path / CONFIG_FILENAME
    save_config(path, ws.config)
    loaded = load_config(path)
    assert loaded.parsed == ws.config.parsed
    assert loaded.is_valid
