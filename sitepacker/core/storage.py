import io
from pathlib import Path
from zipfile import ZIP_DEFLATED, ZipFile

from .models import ConfigDocument, parse_config
from .packager import PackageManifest


def archive_bytes(manifest: PackageManifest) -> bytes:
    buffer = io.BytesIO()
    with ZipFile(buffer, "w", compression=ZIP_DEFLATED) as zf:
        for name, content in manifest.files().items():
            zf.writestr(name, content)
    return buffer.getvalue()


def write_archive(path: str | Path, manifest: PackageManifest) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(archive_bytes(manifest))
    return path


def save_config(path: str | Path, config: ConfigDocument) -> None:
    path = Path(path)
    path.write_text(config.to_text(), encoding="utf-8")


def load_config(path: str | Path) -> ConfigDocument:
    path = Path(path)
    return parse_config(path.read_text(encoding="utf-8"))
