from __future__ import annotations

import json
import sys
import threading
from pathlib import Path

import pytest
import requests

sys.path.append(str(Path(__file__).resolve().parents[1]))

from sitepacker.assistant import AssistantClient, concat_pages, normalize_filename, suggest_names
from sitepacker.core.models import ENTRY_POINT_NAME, UploadedAsset
from sitepacker.core.workspace import build_workspace, set_entry_point
from sitepacker.errors import (
    AssistantError,
    BatchSuggestionError,
    ConfigGenerationError,
    SuggestionError,
)
from sitepacker.settings import Settings


class _Response:
    def __init__(self, payload, status_code: int = 200) -> None:
        self._payload = payload
        self.status_code = status_code

    def json(self):
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload


class _Session:
    def __init__(self, *responses) -> None:
        self.responses = list(responses)
        self.calls: list[dict] = []

    def post(self, url, headers=None, json=None, timeout=None):
        self.calls.append({"url": url, "headers": headers, "json": json, "timeout": timeout})
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


def _reply(text: str) -> _Response:
    return _Response({"choices": [{"message": {"content": text}}]})


@pytest.fixture
def settings(monkeypatch: pytest.MonkeyPatch) -> Settings:
    monkeypatch.setenv("OPENAI_API_KEY", "test-key")
    return Settings(retries=1)


def _pages(count: int):
    assets = [UploadedAsset(f"p{i}.html", f"<h1>Page {i}</h1>", "text/html") for i in range(count)]
    return build_workspace(assets)


def test_normalize_filename() -> None:
    assert normalize_filename("Sure! `about-us.html` is good") == "about-us.html"
    assert normalize_filename("  Pricing-Plans.HTML ") == "pricing-plans.html"
    with pytest.raises(SuggestionError):
        normalize_filename("I cannot help with that")
    with pytest.raises(SuggestionError):
        normalize_filename(".html")


def test_suggest_filename_posts_prompt(settings: Settings) -> None:
    session = _Session(_reply("team-page.html"))
    client = AssistantClient(settings, session=session)
    assert client.suggest_filename("<h1>Team</h1>" + "x" * 5000) == "team-page.html"
    call = session.calls[0]
    assert call["url"] == "https://api.openai.com/v1/chat/completions"
    assert call["headers"]["Authorization"] == "Bearer test-key"
    prompt = call["json"]["messages"][0]["content"]
    assert "<h1>Team</h1>" in prompt
    assert "x" * 4001 not in prompt


def test_client_retries_transport_errors(settings: Settings) -> None:
    session = _Session(requests.ConnectionError("down"), _reply("ok-name.html"))
    client = AssistantClient(settings, session=session)
    assert client.suggest_filename("<p/>") == "ok-name.html"
    assert len(session.calls) == 2


def test_client_reports_api_errors(settings: Settings) -> None:
    session = _Session(_Response({"error": {"message": "bad key"}}, status_code=401))
    client = AssistantClient(settings, session=session)
    with pytest.raises(AssistantError, match="bad key"):
        client.complete("hi")


def test_client_requires_api_key(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    client = AssistantClient(Settings(), session=_Session())
    with pytest.raises(AssistantError):
        client.complete("hi")


def test_generate_config(settings: Settings) -> None:
    payload = {"social_links": {"telegram": "your Telegram link"}}
    session = _Session(_reply(json.dumps(payload)))
    client = AssistantClient(settings, session=session)
    assert json.loads(client.generate_config("<a href='{{ social_links.telegram }}'>tg</a>")) == payload
    assert session.calls[0]["json"]["response_format"] == {"type": "json_object"}


def test_generate_config_rejects_non_json(settings: Settings) -> None:
    client = AssistantClient(settings, session=_Session(_reply("here you go: {")))
    with pytest.raises(ConfigGenerationError):
        client.generate_config("<p/>")
    client = AssistantClient(settings, session=_Session(_reply("[1, 2]")))
    with pytest.raises(ConfigGenerationError):
        client.generate_config("<p/>")


def test_suggest_names_isolates_failures() -> None:
    ws = _pages(4)
    lock = threading.Lock()
    seen: list[str] = []

    def suggest(html: str) -> str:
        with lock:
            seen.append(html)
        if "Page 2" in html:
            raise SuggestionError("nope")
        return html.replace("<h1>", "").replace("</h1>", "").lower().replace(" ", "-") + ".html"

    names = suggest_names(ws.pages, suggest, max_workers=4)
    assert len(seen) == 4
    assert [names[p.id] for p in ws.pages] == ["page-0.html", "page-1.html", "p2.html", "page-3.html"]


def test_suggest_names_keeps_entry_point() -> None:
    ws = _pages(2)
    ws = set_entry_point(ws, ws.pages[0].id)
    names = suggest_names(ws.pages, lambda html: "suggested.html")
    assert names[ws.pages[0].id] == ENTRY_POINT_NAME
    assert names[ws.pages[1].id] == "suggested.html"


def test_suggest_names_malformed_result_fails_batch() -> None:
    ws = _pages(2)
    with pytest.raises(BatchSuggestionError):
        suggest_names(ws.pages, lambda html: None)  # type: ignore[arg-type, return-value]


def test_concat_pages() -> None:
    ws = _pages(2)
    assert concat_pages(ws) == "<h1>Page 0</h1>\n\n<h1>Page 1</h1>"
