"""Rewrite stylesheet, image and script references into embedded content."""

from __future__ import annotations

import base64
import logging
from typing import Mapping
from urllib.parse import urlparse

from bs4 import BeautifulSoup

from .models import UploadedAsset, guess_media_type

logger = logging.getLogger(__name__)

# Attributes that only make sense for a fetched script.
_FETCH_ONLY_SCRIPT_ATTRS = ("src", "async", "defer", "integrity", "crossorigin")


def is_external(reference: str) -> bool:
    value = reference.strip()
    if value.startswith("//"):
        return True
    parsed = urlparse(value)
    return bool(parsed.scheme or parsed.netloc)


def basename(reference: str) -> str:
    path = urlparse(reference.strip()).path
    return path.replace("\\", "/").rsplit("/", 1)[-1]


def _lookup(reference: str | None, assets: Mapping[str, UploadedAsset]) -> UploadedAsset | None:
    if not reference or is_external(reference):
        return None
    name = basename(reference)
    asset = assets.get(name) if name else None
    if asset is None:
        logger.debug("No uploaded asset for reference %r", reference)
    return asset


def data_uri(asset: UploadedAsset) -> str:
    media_type = asset.media_type or guess_media_type(asset.name)
    encoded = base64.b64encode(asset.as_bytes()).decode("ascii")
    return f"data:{media_type};base64,{encoded}"


def inline(html: str, assets: Mapping[str, UploadedAsset], *, scripts: bool = True) -> str:
    """Return ``html`` with local stylesheets, images and scripts embedded.

    References are matched by basename only. Anything that is external, already
    a data URI or not among ``assets`` is left untouched.
    """
    soup = BeautifulSoup(html, "html.parser")

    for link in soup.find_all("link", href=True):
        rel = [value.lower() for value in (link.get("rel") or [])]
        if "stylesheet" not in rel:
            continue
        asset = _lookup(link["href"], assets)
        if asset is None or not asset.is_text:
            continue
        style = soup.new_tag("style")
        media = link.get("media")
        if media:
            style["media"] = media
        style.string = asset.content
        link.replace_with(style)

    for img in soup.find_all("img", src=True):
        src = img["src"]
        if src.strip().startswith("data:"):
            continue
        asset = _lookup(src, assets)
        if asset is None:
            continue
        if asset.is_text:
            logger.debug("Skipping text asset %s referenced as an image", asset.name)
            continue
        img["src"] = data_uri(asset)

    if scripts:
        for script in soup.find_all("script", src=True):
            asset = _lookup(script["src"], assets)
            if asset is None or not asset.is_text:
                continue
            for attr in _FETCH_ONLY_SCRIPT_ATTRS:
                if attr in script.attrs:
                    del script[attr]
            script.string = asset.content

    return str(soup)
