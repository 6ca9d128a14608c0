import asyncio

import httpx
import pytest

from gmonlink_bot.errors import ProjectPersistenceError, UploadError
from gmonlink_bot.storage import slugify


@pytest.mark.parametrize(
    "name, expected",
    [
        ("Acme", "acme"),
        ("Acme Widgets!", "acme-widgets"),
        ("  Café  Olé ", "cafe-ole"),
        ("---", ""),
        ("a" * 80, "a" * 48),
    ],
)
def test_slugify(name, expected):
    assert slugify(name) == expected


def test_get_user_creates_missing_user_once(repository, supabase):
    first = asyncio.run(repository.get_user(42, "acme_dev"))
    second = asyncio.run(repository.get_user(42, "renamed"))

    assert first == {"user_id": 42, "username": "acme_dev"}
    assert second == first
    assert len(supabase.tables["users"]) == 1


def test_create_slug_avoids_taken_slugs(repository, supabase):
    supabase.tables["projects"] = [{"slug": "acme"}]

    slug = asyncio.run(repository.create_slug("Acme"))

    assert slug.startswith("acme-")
    assert slug != "acme"


def test_create_slug_falls_back_for_unsluggable_names(repository):
    assert asyncio.run(repository.create_slug("🚀🚀")) == "project"


def test_upload_avatar_upserts_with_content_type(repository, supabase):
    path = asyncio.run(repository.upload_avatar("acme.png", b"data", "image/png"))

    assert path == "gmon.link/acme.png"
    upload = supabase.uploads[0]
    assert upload["bucket"] == "gmon.link"
    assert upload["path"] == "acme.png"
    assert upload["file_options"] == {"content-type": "image/png", "upsert": "true"}


def test_upload_avatar_wraps_storage_errors(repository, supabase):
    supabase.fail_uploads = True

    with pytest.raises(UploadError):
        asyncio.run(repository.upload_avatar("acme.jpg", b"data", "image/jpeg"))


def test_insert_project_returns_row_with_id(repository, supabase):
    row = asyncio.run(repository.insert_project({"slug": "acme", "title": "Acme"}))

    assert row["project_id"] == 1
    assert supabase.tables["projects"] == [row]


def test_insert_project_raises_on_api_error(repository, supabase):
    supabase.fail_inserts.add("projects")

    with pytest.raises(ProjectPersistenceError, match="rejected"):
        asyncio.run(repository.insert_project({"slug": "acme"}))


def test_insert_project_raises_on_empty_result(repository, supabase):
    supabase.empty_inserts.add("projects")

    with pytest.raises(ProjectPersistenceError, match="returned no row"):
        asyncio.run(repository.insert_project({"slug": "acme"}))


def test_insert_project_wraps_transport_errors(repository, supabase):
    supabase.errors[("insert", "projects")] = httpx.ConnectError("db down")

    with pytest.raises(ProjectPersistenceError, match="failed: db down"):
        asyncio.run(repository.insert_project({"slug": "acme"}))


def test_create_slug_wraps_lookup_errors(repository, supabase):
    supabase.errors[("select", "projects")] = httpx.ReadTimeout("slow db")

    with pytest.raises(ProjectPersistenceError, match="could not check slug 'acme'"):
        asyncio.run(repository.create_slug("Acme"))
