"""Error hierarchy for the site packager.

Hierarchy:
    SitePackerError
    ├── BatchReadError
    ├── MissingEntryPointError
    ├── PageLockedError
    ├── UnknownPageError
    ├── StalePreviewError
    └── AssistantError
        ├── SuggestionError
        ├── BatchSuggestionError
        └── ConfigGenerationError
"""

from __future__ import annotations


class SitePackerError(Exception):
    """Base class for all packager errors."""


class BatchReadError(SitePackerError):
    """An upload batch could not be read; nothing from it was kept."""


class MissingEntryPointError(SitePackerError):
    """Packaging was requested before a page was marked as the entry point."""


class PageLockedError(SitePackerError):
    """The entry point page cannot be renamed."""


class UnknownPageError(SitePackerError):
    pass


class StalePreviewError(SitePackerError):
    """A preview handle was used after it had been released."""


class AssistantError(SitePackerError):
    """Base class for failures of the AI collaborators."""


class SuggestionError(AssistantError):
    """A filename suggestion did not have the expected shape."""


class BatchSuggestionError(AssistantError):
    """The results of a batch of filename suggestions could not be combined."""


class ConfigGenerationError(AssistantError):
    """The config generator did not return a JSON object."""
