"""
project_draft.py — Project fields collected during the Telegram conversation.

Filled in step by step as the user answers; turned into a ``projects``
row only once the image is stored. An aborted flow simply drops it.
"""

from __future__ import annotations

from dataclasses import dataclass
from html import escape
from typing import Any, Dict, List, Optional

from .links import build_links


@dataclass
class ProjectDraft:
    """Accumulates project fields during a Telegram conversation."""

    name: str = ""
    description: str = ""
    twitter_url: Optional[str] = None
    github_url: Optional[str] = None

    # Set while the image is being handled
    slug: str = ""
    image_url: Optional[str] = None

    def links(self) -> List[Dict[str, str]]:
        return build_links(self.twitter_url, self.github_url)

    def to_row(self, user_id: int) -> Dict[str, Any]:
        """Payload for the ``projects`` insert."""
        return {
            "user_id": user_id,
            "title": self.name,
            "description": self.description,
            "slug": self.slug,
            "avatar_url": self.image_url,
            "links": self.links(),
        }

    def summary_text(self) -> str:
        """HTML summary shown when the user cancels."""
        lines = [f"<b>Name:</b> {escape(self.name)}" if self.name else "<b>Name:</b> -"]
        if self.description:
            short = self.description[:120] + ("..." if len(self.description) > 120 else "")
            lines.append(f"<b>Description:</b> {escape(short)}")
        for link in self.links():
            lines.append(f"<b>{link['title']}:</b> {escape(link['url'])}")
        return "\n".join(lines)
