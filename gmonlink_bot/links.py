"""
links.py — Turns a Twitter / GitHub answer into a profile link.

Accepted answers:
  "no"                          → skip, no link
  "https://twitter.com/acme"    → handle pulled out of the URL
  "acme"                        → used as the handle directly
"""

from __future__ import annotations

import re
from typing import Dict, List, Optional

from .errors import InvalidProfileUrl

SKIP_WORD = "no"

TWITTER = "twitter"
GITHUB = "github"

_HANDLE_PATTERNS = {
    TWITTER: re.compile(r"(?:https?://)?(?:www\.)?twitter\.com/([a-zA-Z0-9_]+)", re.IGNORECASE),
    GITHUB: re.compile(r"(?:https?://)?(?:www\.)?github\.com/([a-zA-Z0-9_-]+)", re.IGNORECASE),
}

# Order links appear in on the project page
_LINK_TITLES = (
    (TWITTER, "Twitter"),
    (GITHUB, "GitHub"),
)


def extract_handle(url: str, platform: str) -> Optional[str]:
    """Return the username in a profile URL, or None if there isn't one."""
    match = _HANDLE_PATTERNS[platform].search(url)
    return match.group(1) if match else None


def normalize_profile_link(raw: str, platform: str) -> Optional[str]:
    """
    Canonical ``https://{platform}.com/{handle}`` for a user answer.

    Returns None when the user typed the skip word. Raises
    InvalidProfileUrl for a URL that has no extractable handle.
    """
    if raw == SKIP_WORD:
        return None

    handle = raw
    if raw.startswith("http"):
        handle = extract_handle(raw, platform)
        if not handle:
            raise InvalidProfileUrl(raw, platform)

    return f"https://{platform}.com/{handle}"


def build_links(twitter_url: Optional[str], github_url: Optional[str]) -> List[Dict[str, str]]:
    urls = {TWITTER: twitter_url, GITHUB: github_url}
    return [
        {"title": title, "url": urls[platform]}
        for platform, title in _LINK_TITLES
        if urls[platform]
    ]
