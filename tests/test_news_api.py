import uuid

import pytest

from yggdrasil.services.news_service import slugify

from conftest import headers

STAFF = headers(uuid.uuid4(), "staff")
STUDENT = headers(uuid.uuid4(), "student")


def article(**fields) -> dict:
    payload = {
        "title": "Library opens late",
        "content": "The library stays open until 22:00 during exams.",
        "category": "announcements",
        "tags": ["Campus", "exams", "campus"],
        "is_published": True,
    }
    payload.update(fields)
    return payload


def test_slugify():
    assert slugify("Library Opens Late!") == "library-opens-late"
    assert slugify("  ***  ") == "article"


async def test_staff_publish_and_readers_see_it(client):
    created = await client.post("/api/news", json=article(), headers=STAFF)
    assert created.status_code == 201
    data = created.json()["data"]
    assert data["slug"] == "library-opens-late"
    assert data["tags"] == ["campus", "exams"]
    assert data["status"] == "published"
    assert data["published_at"] is not None

    fetched = await client.get(f"/api/news/slug/{data['slug']}")
    assert fetched.json()["data"]["view_count"] == 1
    fetched = await client.get(f"/api/news/{data['id']}")
    assert fetched.json()["data"]["view_count"] == 2


async def test_students_cannot_publish(client):
    response = await client.post("/api/news", json=article(), headers=STUDENT)
    assert response.status_code == 403


@pytest.mark.parametrize(
    "overrides",
    [
        {"title": "x" * 301},
        {"title": "   "},
        {"content": ""},
        {"tags": [f"tag{n}" for n in range(11)]},
        {"tags": ["x" * 51]},
        {"category": "gossip"},
    ],
)
async def test_invalid_articles(client, overrides):
    response = await client.post("/api/news", json=article(**overrides), headers=STAFF)
    assert response.status_code == 400


async def test_same_title_gets_a_fresh_slug(client):
    first = await client.post("/api/news", json=article(), headers=STAFF)
    second = await client.post("/api/news", json=article(), headers=STAFF)
    assert first.json()["data"]["slug"] == "library-opens-late"
    assert second.json()["data"]["slug"] == "library-opens-late-2"


async def test_drafts_are_hidden_from_readers(client):
    draft = await client.post("/api/news", json=article(is_published=False), headers=STAFF)
    draft_id = draft.json()["data"]["id"]

    assert (await client.get("/api/news")).json()["pagination"]["total"] == 0
    assert (await client.get(f"/api/news/{draft_id}", headers=STUDENT)).status_code == 404
    assert (await client.get("/api/news", headers=STAFF)).json()["pagination"]["total"] == 1

    published = await client.put(f"/api/news/{draft_id}", json={"is_published": True}, headers=STAFF)
    assert published.json()["data"]["status"] == "published"
    assert (await client.get("/api/news")).json()["pagination"]["total"] == 1


async def test_listing_filters_and_pinning(client):
    await client.post("/api/news", json=article(title="Sports day", tags=["sports"], category="events"), headers=STAFF)
    await client.post("/api/news", json=article(title="Exam timetable", is_pinned=True), headers=STAFF)

    listing = (await client.get("/api/news")).json()
    assert [a["title"] for a in listing["data"]] == ["Exam timetable", "Sports day"]
    assert listing["pagination"] == {
        "page": 1, "limit": 20, "total": 2, "total_pages": 1, "has_next": False, "has_previous": False,
    }

    by_tag = (await client.get("/api/news", params={"tag": "sports"})).json()
    assert [a["title"] for a in by_tag["data"]] == ["Sports day"]
    by_category = (await client.get("/api/news", params={"category": "events"})).json()
    assert [a["title"] for a in by_category["data"]] == ["Sports day"]
    by_search = (await client.get("/api/news/articles", params={"search": "TIMETABLE"})).json()
    assert [a["title"] for a in by_search["data"]] == ["Exam timetable"]


@pytest.mark.parametrize(
    "params, status",
    [
        ({"limit": 0}, 400),
        ({"limit": 101}, 400),
        ({"page": 0}, 400),
        ({"page": -3}, 400),
        ({"limit": 100, "page": 1}, 200),
        ({"limit": 1, "page": 50}, 200),
    ],
)
async def test_page_bounds(client, params, status):
    response = await client.get("/api/news", params=params)
    assert response.status_code == status
    if status == 400:
        assert response.json()["success"] is False


async def test_update_and_delete_permissions(client):
    created = await client.post("/api/news", json=article(), headers=STAFF)
    url = f"/api/news/{created.json()['data']['id']}"

    assert (await client.put(url, json={"title": "Hacked"}, headers=STUDENT)).status_code == 403

    renamed = await client.put(url, json={"title": "Library hours extended"}, headers=STAFF)
    assert renamed.json()["data"]["slug"] == "library-hours-extended"

    archived = await client.put(url, json={"status": "archived"}, headers=STAFF)
    assert archived.json()["data"]["is_published"] is False

    assert (await client.delete(url, headers=STUDENT)).status_code == 403
    assert (await client.delete(url, headers=STAFF)).status_code == 200
    assert (await client.get(url, headers=STAFF)).status_code == 404
