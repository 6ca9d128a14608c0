import io
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest
from PIL import Image
from postgrest.exceptions import APIError

from gmonlink_bot.config import BotSettings
from gmonlink_bot.session_store import SessionStores
from gmonlink_bot.storage import ProjectRepository
from gmonlink_bot.telegram_bot import REPOSITORY_KEY, SETTINGS_KEY, STORES_KEY


class _FakeQuery:
    def __init__(self, db: "FakeSupabase", table: str):
        self._db = db
        self._table = table
        self._op = "select"
        self._filters: list[tuple[str, object]] = []
        self._payload = None

    def select(self, *columns):
        self._op = "select"
        return self

    def eq(self, column, value):
        self._filters.append((column, value))
        return self

    def limit(self, n):
        return self

    def insert(self, payload):
        self._op = "insert"
        self._payload = payload
        return self

    def execute(self):
        error = self._db.errors.get((self._op, self._table))
        if error is not None:
            raise error
        if self._op == "insert":
            rows = self._db.tables.setdefault(self._table, [])
            if self._table in self._db.fail_inserts:
                raise APIError({"message": f"insert into {self._table} rejected"})
            if self._table in self._db.empty_inserts:
                return SimpleNamespace(data=[])
            row = dict(self._payload)
            if self._table == "projects":
                row["project_id"] = len(rows) + 1
            rows.append(row)
            return SimpleNamespace(data=[row])
        rows = self._db.tables.get(self._table, [])
        matched = [r for r in rows if all(r.get(c) == v for c, v in self._filters)]
        return SimpleNamespace(data=matched)


class _FakeBucket:
    def __init__(self, db: "FakeSupabase", name: str):
        self._db = db
        self._name = name

    def upload(self, path, file, file_options=None):
        if self._db.fail_uploads:
            raise RuntimeError("storage unavailable")
        self._db.uploads.append(
            {"bucket": self._name, "path": path, "file": file, "file_options": file_options}
        )
        return SimpleNamespace(path=path, full_path=f"{self._name}/{path}")


class FakeSupabase:
    """Just enough of the supabase client for the repository."""

    def __init__(self):
        self.tables: dict[str, list[dict]] = {}
        self.uploads: list[dict] = []
        self.fail_uploads = False
        self.fail_inserts: set[str] = set()
        self.empty_inserts: set[str] = set()
        # (op, table) → exception raised by execute(), e.g. a dropped connection
        self.errors: dict[tuple[str, str], Exception] = {}
        self.storage = SimpleNamespace(from_=lambda name: _FakeBucket(self, name))

    def table(self, name):
        return _FakeQuery(self, name)


@pytest.fixture
def supabase():
    return FakeSupabase()


@pytest.fixture
def settings():
    return BotSettings(
        bot_token="123:abc",
        supabase_url="https://example.supabase.co",
        supabase_key="service-key",
        alerts_channel_id="-100200300",
        conversation_timeout=None,
    )


@pytest.fixture
def repository(supabase):
    return ProjectRepository(supabase, bucket="gmon.link")


@pytest.fixture
def stores():
    return SessionStores()


@pytest.fixture
def jpeg_bytes():
    buf = io.BytesIO()
    Image.new("RGB", (8, 8), (200, 30, 30)).save(buf, format="JPEG")
    return buf.getvalue()


def _telegram_file(file_path, content):
    return SimpleNamespace(
        file_path=file_path,
        download_as_bytearray=AsyncMock(return_value=bytearray(content)),
    )


@pytest.fixture
def bot(jpeg_bytes):
    return SimpleNamespace(
        get_file=AsyncMock(
            return_value=_telegram_file("https://api.telegram.org/file/bot123:abc/photos/file_1.jpg", jpeg_bytes)
        ),
        edit_message_text=AsyncMock(),
        send_message=AsyncMock(),
    )


@pytest.fixture
def context(settings, repository, stores, bot):
    return SimpleNamespace(
        bot=bot,
        bot_data={SETTINGS_KEY: settings, REPOSITORY_KEY: repository, STORES_KEY: stores},
        user_data={},
        error=None,
    )


@pytest.fixture
def make_update():
    def _make(text=None, photo=None, user_id=42, username="acme_dev"):
        message = SimpleNamespace(
            text=text,
            photo=photo or (),
            reply_text=AsyncMock(return_value=SimpleNamespace(message_id=555)),
        )
        return SimpleNamespace(
            effective_user=SimpleNamespace(id=user_id, username=username, full_name="Acme Dev"),
            effective_chat=SimpleNamespace(id=7, send_action=AsyncMock()),
            effective_message=message,
            message=message,
            callback_query=None,
        )

    return _make
