import uuid

import pytest

from conftest import headers

ADMIN = headers(uuid.uuid4(), "admin")


def promotion_payload(**fields) -> dict:
    payload = {"name": "Data Science 2030", "code": "ds2030", "start_year": 2030, "end_year": 2032, "capacity": 2}
    payload.update(fields)
    return payload


@pytest.fixture
async def promotion_id(client):
    response = await client.post("/api/promotions", json=promotion_payload(), headers=ADMIN)
    assert response.status_code == 201
    return response.json()["data"]["id"]


async def test_create_and_fetch(client, promotion_id):
    response = await client.get(f"/api/promotions/{promotion_id}")
    data = response.json()["data"]
    assert data["code"] == "DS2030"
    assert data["status"] == "active"
    assert (data["enrollment_count"], data["available_spots"]) == (0, 2)


async def test_only_staff_can_create(client):
    response = await client.post("/api/promotions", json=promotion_payload(code="X1"), headers=headers(uuid.uuid4(), "teacher"))
    assert response.status_code == 403


async def test_duplicate_code_is_a_conflict(client, promotion_id):
    response = await client.post("/api/promotions", json=promotion_payload(code="DS2030"), headers=ADMIN)
    assert response.status_code == 409


async def test_enrollment_limits(client, promotion_id):
    url = f"/api/promotions/{promotion_id}/students"
    first, second = str(uuid.uuid4()), str(uuid.uuid4())

    assert (await client.post(url, json={"student_id": first}, headers=ADMIN)).status_code == 200

    duplicate = await client.post(url, json={"student_id": first}, headers=ADMIN)
    assert duplicate.status_code == 409
    assert duplicate.json()["error"] == "Student is already enrolled in this promotion"

    assert (await client.post(url, json={"student_id": second}, headers=ADMIN)).status_code == 200
    full = await client.post(url, json={"student_id": str(uuid.uuid4())}, headers=ADMIN)
    assert full.status_code == 409
    assert full.json()["error"] == "Promotion is at full capacity"

    mine = await client.get(f"/api/promotions/student/{first}")
    assert [p["id"] for p in mine.json()["data"]] == [promotion_id]

    removed = await client.delete(f"{url}/{first}", headers=ADMIN)
    assert removed.json()["data"]["enrollment_count"] == 1
    assert (await client.delete(f"{url}/{first}", headers=ADMIN)).status_code == 404


async def test_courses(client, promotion_id):
    course = str(uuid.uuid4())
    url = f"/api/promotions/{promotion_id}/courses"
    added = await client.post(url, json={"course_id": course}, headers=ADMIN)
    assert added.json()["data"]["courses"] == [course]
    assert (await client.post(url, json={"course_id": course}, headers=ADMIN)).status_code == 409
    assert (await client.delete(f"{url}/{course}", headers=ADMIN)).status_code == 200
    assert (await client.delete(f"{url}/{course}", headers=ADMIN)).status_code == 404


async def test_status_changes(client, promotion_id):
    url = f"/api/promotions/{promotion_id}/status"
    assert (await client.patch(url, json={"status": "completed"}, headers=ADMIN)).status_code == 200
    reopened = await client.patch(url, json={"status": "active"}, headers=ADMIN)
    assert reopened.status_code == 409
    assert (await client.patch(url, json={"status": "graduated"}, headers=ADMIN)).status_code == 400


async def test_update_keeps_capacity_above_enrollment(client):
    students = [str(uuid.uuid4()), str(uuid.uuid4())]
    created = await client.post("/api/promotions", json=promotion_payload(students=students), headers=ADMIN)
    url = f"/api/promotions/{created.json()['data']['id']}"

    assert (await client.put(url, json={"capacity": 1}, headers=ADMIN)).status_code == 400
    updated = await client.put(url, json={"capacity": 5}, headers=ADMIN)
    assert updated.json()["data"]["available_spots"] == 3


@pytest.mark.parametrize(
    "params, status",
    [
        ({"page": 0}, 400),
        ({"limit": 0}, 400),
        ({"limit": 101}, 400),
        ({"page": 1, "limit": 100}, 200),
    ],
)
async def test_listing_pagination_bounds(client, params, status):
    assert (await client.get("/api/promotions", params=params)).status_code == status


async def test_listing_filters(client, promotion_id):
    await client.post("/api/promotions", json=promotion_payload(code="OLD2020", start_year=2020, end_year=2022), headers=ADMIN)
    await client.patch(f"/api/promotions/{promotion_id}/status", json={"status": "suspended"}, headers=ADMIN)

    everything = (await client.get("/api/promotions")).json()
    assert [p["code"] for p in everything["data"]] == ["DS2030", "OLD2020"]
    assert everything["pagination"]["total"] == 2

    active = (await client.get("/api/promotions", params={"status": "active"})).json()
    assert [p["code"] for p in active["data"]] == ["OLD2020"]
