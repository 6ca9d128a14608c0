"""
storage.py — Supabase access for the bot: users, slugs, avatars, projects.

The supabase client is synchronous, so each call is pushed onto the
default thread pool to keep the bot responsive.
"""

from __future__ import annotations

import asyncio
import functools
import logging
import re
import unicodedata
import uuid
from typing import Any, Callable, Dict, Optional

from postgrest.exceptions import APIError
from supabase import Client, create_client

from .config import BotSettings
from .errors import ProjectPersistenceError, UploadError

logger = logging.getLogger(__name__)

USERS_TABLE = "users"
PROJECTS_TABLE = "projects"

_MAX_SLUG_LEN = 48
_SLUG_ATTEMPTS = 8


def slugify(text: str) -> str:
    """'Acme Widgets!' → 'acme-widgets'. Non-latin text may end up empty."""
    folded = unicodedata.normalize("NFKD", text).encode("ascii", "ignore").decode("ascii")
    slug = re.sub(r"[^a-z0-9]+", "-", folded.lower()).strip("-")
    return slug[:_MAX_SLUG_LEN].rstrip("-")


class ProjectRepository:
    """Thin wrapper over the supabase client for the tables/bucket the bot uses."""

    def __init__(self, client: Client, bucket: str) -> None:
        self.client = client
        self.bucket = bucket

    async def _run(self, func: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        loop = asyncio.get_event_loop()
        return await loop.run_in_executor(None, functools.partial(func, *args, **kwargs))

    # ── Users ─────────────────────────────────────────────────────────────────

    async def get_user(self, user_id: int, username: str) -> Dict[str, Any]:
        """Fetch the user row, creating it on first contact."""
        return await self._run(self._get_user_sync, user_id, username)

    def _get_user_sync(self, user_id: int, username: str) -> Dict[str, Any]:
        res = (
            self.client.table(USERS_TABLE)
            .select("*")
            .eq("user_id", user_id)
            .limit(1)
            .execute()
        )
        if res.data:
            return res.data[0]

        logger.info(f"Creating user record for {user_id} ({username})")
        res = (
            self.client.table(USERS_TABLE)
            .insert({"user_id": user_id, "username": username})
            .execute()
        )
        return res.data[0] if res.data else {"user_id": user_id, "username": username}

    # ── Slugs ─────────────────────────────────────────────────────────────────

    async def create_slug(self, name: str) -> str:
        return await self._run(self._create_slug_sync, name)

    def _slug_taken(self, slug: str) -> bool:
        res = (
            self.client.table(PROJECTS_TABLE)
            .select("slug")
            .eq("slug", slug)
            .limit(1)
            .execute()
        )
        return bool(res.data)

    def _create_slug_sync(self, name: str) -> str:
        base = slugify(name) or "project"
        candidate = base
        for _ in range(_SLUG_ATTEMPTS):
            try:
                taken = self._slug_taken(candidate)
            except Exception as e:
                raise ProjectPersistenceError(f"could not check slug {candidate!r}: {e}") from e
            if not taken:
                return candidate
            candidate = f"{base}-{uuid.uuid4().hex[:6]}"
        # Extremely unlikely; a longer suffix is as good as unique
        return f"{base}-{uuid.uuid4().hex}"

    # ── Avatars ───────────────────────────────────────────────────────────────

    async def upload_avatar(self, filename: str, data: bytes, content_type: str) -> str:
        """Upload (overwriting) ``filename`` to the bucket, return its full path."""
        return await self._run(self._upload_avatar_sync, filename, data, content_type)

    def _upload_avatar_sync(self, filename: str, data: bytes, content_type: str) -> str:
        try:
            res = self.client.storage.from_(self.bucket).upload(
                path=filename,
                file=data,
                file_options={"content-type": content_type, "upsert": "true"},
            )
        except Exception as e:
            raise UploadError(f"storage rejected {filename}: {e}") from e

        full_path = getattr(res, "full_path", None) or getattr(res, "fullPath", None)
        if not full_path:
            raise UploadError(f"storage returned no path for {filename}")
        return full_path

    # ── Projects ──────────────────────────────────────────────────────────────

    async def insert_project(self, row: Dict[str, Any]) -> Dict[str, Any]:
        """Insert a project and return the stored row (with project_id)."""
        return await self._run(self._insert_project_sync, row)

    def _insert_project_sync(self, row: Dict[str, Any]) -> Dict[str, Any]:
        try:
            res = self.client.table(PROJECTS_TABLE).insert(row).execute()
        except APIError as e:
            raise ProjectPersistenceError(e.message or str(e)) from e
        except Exception as e:
            raise ProjectPersistenceError(f"insert of project {row.get('slug')!r} failed: {e}") from e
        if not res.data:
            raise ProjectPersistenceError(f"insert of project {row.get('slug')!r} returned no row")
        return res.data[0]


def create_repository(settings: BotSettings, client: Optional[Client] = None) -> ProjectRepository:
    if client is None:
        client = create_client(settings.supabase_url, settings.supabase_key)
    return ProjectRepository(client, bucket=settings.storage_bucket)
