"""
errors.py — Exceptions raised by the project-creation flow.

User-input problems are reported back in the chat by the handlers;
anything not caught there ends up in the application error handler.
"""

from __future__ import annotations


class GmonLinkError(Exception):
    """Base class for every error raised by the bot."""


class ConfigError(GmonLinkError):
    """Required settings are missing from the environment."""


class InvalidProfileUrl(GmonLinkError):
    """A social profile URL did not contain a recognisable handle."""

    def __init__(self, url: str, platform: str) -> None:
        super().__init__(f"no {platform} handle found in {url!r}")
        self.url = url
        self.platform = platform


class UploadError(GmonLinkError):
    """The project image could not be fetched or stored."""


class ProjectPersistenceError(GmonLinkError):
    """The project row could not be inserted."""
