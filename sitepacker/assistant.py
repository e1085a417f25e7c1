"""AI helpers: filename suggestions and configuration generation.

Both talk to an OpenAI-compatible chat completions endpoint. Neither is
needed to build a package; they only propose names and config values.
"""

from __future__ import annotations

import json
import logging
import re
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Dict, Iterable, Optional

import requests

from .core.models import ENTRY_POINT_NAME, PageDocument, Workspace
from .errors import (
    AssistantError,
    BatchSuggestionError,
    ConfigGenerationError,
    SuggestionError,
)
from .settings import Settings

logger = logging.getLogger(__name__)

SUGGEST_LIMIT = 4000
CONFIG_LIMIT = 10000

SUGGEST_PROMPT = """Analyze the following HTML content and suggest a concise, semantic, and SEO-friendly filename. The filename should be in lowercase, use hyphens instead of spaces, and end with the .html extension. Only return the filename itself, with no other text.

HTML Content:
```html
{html}
```
"""

CONFIG_PROMPT = """Analyze the following HTML and find every placeholder for dynamic data. Placeholders can be phrases such as "link to your bot here", "[YOUR-LINK-HERE]", "your-analytics-id", "twitter-url" or template tokens like {{{{ some_variable }}}}.

Build a structured JSON object from these placeholders.
- Keys must be semantic, in English, lower case snake_case (for example 'social_links', 'analytics_id').
- Group related keys into nested objects (for example 'social_links': {{ 'telegram': '...' }}).
- Values must be descriptive placeholders explaining what to enter (for example "your Telegram channel link"). Do NOT use empty strings.
- Reply with a valid JSON object only, without any other text, explanation or markdown fences.

HTML content:
```html
{html}
```
"""

_FILENAME_RE = re.compile(r"[\w-]+\.html")

Suggester = Callable[[str], str]


def normalize_filename(reply: str) -> str:
    """Extract a filename from a model reply or raise ``SuggestionError``."""
    text = reply.strip()
    match = _FILENAME_RE.search(text)
    name = match.group(0) if match else re.sub(r"\s+", "-", text.lower())
    if not name.endswith(".html") or len(name) <= 5 or "`" in name:
        raise SuggestionError(f"Unusable filename suggestion: {reply[:80]!r}")
    return name.lower()


class AssistantClient:
    def __init__(self, settings: Optional[Settings] = None, session: Optional[requests.Session] = None) -> None:
        self.settings = settings or Settings()
        self.session = session or requests.Session()

    def complete(self, prompt: str, *, temperature: float = 0.2, json_mode: bool = False) -> str:
        key = self.settings.api_key
        if not key:
            raise AssistantError(f"Set {self.settings.api_key_env} in your environment.")
        body: dict = {
            "model": self.settings.model,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": temperature,
        }
        if json_mode:
            body["response_format"] = {"type": "json_object"}

        attempts = max(1, self.settings.retries + 1)
        last_exc: Exception | None = None
        for attempt in range(1, attempts + 1):
            try:
                response = self.session.post(
                    f"{self.settings.api_base.rstrip('/')}/chat/completions",
                    headers={"Authorization": f"Bearer {key}"},
                    json=body,
                    timeout=self.settings.timeout,
                )
            except requests.RequestException as exc:
                last_exc = exc
                logger.debug("Assistant request failed (attempt %d/%d): %s", attempt, attempts, exc)
                continue
            return self._parse(response)
        raise AssistantError(f"Assistant request failed: {last_exc}") from last_exc

    @staticmethod
    def _parse(response: requests.Response) -> str:
        try:
            payload = response.json()
        except ValueError as exc:
            raise AssistantError(f"Assistant returned a non-JSON response ({response.status_code})") from exc
        if response.status_code >= 400 or "error" in payload:
            error = payload.get("error") or {}
            message = error.get("message", "Request failed") if isinstance(error, dict) else str(error)
            raise AssistantError(str(message))
        choices = payload.get("choices") or []
        text = choices[0].get("message", {}).get("content", "") if choices else ""
        if not text:
            raise AssistantError("Assistant returned an empty response")
        return text.strip()

    def suggest_filename(self, html: str) -> str:
        reply = self.complete(SUGGEST_PROMPT.format(html=html[:SUGGEST_LIMIT]))
        return normalize_filename(reply)

    def generate_config(self, html: str) -> str:
        try:
            reply = self.complete(CONFIG_PROMPT.format(html=html[:CONFIG_LIMIT]), temperature=0.1, json_mode=True)
        except AssistantError as exc:
            raise ConfigGenerationError(f"Could not generate configuration: {exc}") from exc
        try:
            data = json.loads(reply)
        except ValueError as exc:
            raise ConfigGenerationError("The assistant did not return valid JSON") from exc
        if not isinstance(data, dict):
            raise ConfigGenerationError("The assistant did not return a JSON object")
        return reply


def concat_pages(workspace: Workspace) -> str:
    return "\n\n".join(page.raw_content for page in workspace.pages)


def _suggest_one(page: PageDocument, suggest: Suggester) -> str:
    if page.is_entry_point:
        return ENTRY_POINT_NAME
    try:
        return suggest(page.raw_content)
    except Exception as exc:  # noqa: BLE001 - each page falls back on its own
        logger.warning("No name suggestion for %s, keeping %s: %s", page.original_name, page.output_name, exc)
        return page.output_name


def suggest_names(
    pages: Iterable[PageDocument],
    suggest: Suggester,
    max_workers: int = 4,
) -> Dict[str, str]:
    """Ask for a name for every page concurrently; return ``page id -> name``.

    A page whose request fails keeps its current name. ``BatchSuggestionError``
    is raised only when the results cannot be combined.
    """
    pages = list(pages)
    if not pages:
        return {}
    with ThreadPoolExecutor(max_workers=max(1, max_workers)) as pool:
        futures = [(page, pool.submit(_suggest_one, page, suggest)) for page in pages]
        try:
            names: Dict[str, str] = {}
            for page, future in futures:
                name = future.result()
                if not isinstance(name, str) or not name.strip():
                    raise TypeError(f"suggestion for {page.original_name} is {name!r}")
                names[page.id] = name.strip()
        except Exception as exc:
            raise BatchSuggestionError(f"Could not optimize file names: {exc}") from exc
    return names
