import pytest
from bson import ObjectId

from beliefted.core.config import settings
from beliefted.db.mongodb import NOTIFICATIONS, PRAYERS


@pytest.mark.asyncio
async def test_create_prayer(client, db, make_user, auth_headers):
    user = await make_user("lydia", name="Lydia")

    resp = await client.post(
        "/api/prayers",
        json={"content": "Pray for my family", "scriptureRef": "Psalm 23", "expiresInDays": 30},
        headers=auth_headers(user),
    )

    assert resp.status_code == 201
    body = resp.json()
    assert body["content"] == "Pray for my family"
    assert body["prayedBy"] == []
    assert body["userId"] == str(user)
    assert body["authorName"] == "Lydia"
    assert body["expiresAt"] is not None
    assert await db[PRAYERS].count_documents({"_id": ObjectId(body["_id"])}) == 1


@pytest.mark.asyncio
async def test_prayer_that_never_expires(client, make_user, auth_headers):
    user = await make_user("lydia")

    resp = await client.post(
        "/api/prayers", json={"content": "Thank you", "expiresInDays": "never"}, headers=auth_headers(user)
    )

    assert resp.status_code == 201
    assert resp.json()["expiresAt"] is None


@pytest.mark.asyncio
async def test_prayer_needs_content(client, make_user, auth_headers):
    user = await make_user("lydia")

    resp = await client.post("/api/prayers", json={"content": "   "}, headers=auth_headers(user))

    assert resp.status_code == 400
    assert resp.json()["detail"]["message"] == "Content is required"


@pytest.mark.asyncio
async def test_prayer_request_needs_a_filled_point(client, make_user, auth_headers):
    user = await make_user("lydia")

    resp = await client.post(
        "/api/prayers",
        json={"kind": "request", "prayerPoints": [{"title": "Work", "description": ""}]},
        headers=auth_headers(user),
    )

    assert resp.status_code == 400
    assert resp.json()["detail"]["message"] == "Add at least one prayer point (title + description)"


@pytest.mark.asyncio
async def test_prayer_request_keeps_only_filled_points(client, make_user, auth_headers):
    user = await make_user("lydia")

    resp = await client.post(
        "/api/prayers",
        json={
            "kind": "request",
            "heading": "This week",
            "content": "ignored for requests",
            "prayerPoints": [
                {"title": "Work", "description": "New job"},
                {"title": "", "description": "dropped"},
            ],
        },
        headers=auth_headers(user),
    )

    assert resp.status_code == 201
    body = resp.json()
    assert body["content"] == ""
    assert body["prayerPoints"] == [{"title": "Work", "description": "New job"}]


@pytest.mark.asyncio
async def test_invalid_expiry_is_a_validation_error(client, make_user, auth_headers):
    user = await make_user("lydia")

    resp = await client.post(
        "/api/prayers", json={"content": "Hi", "expiresInDays": 3}, headers=auth_headers(user)
    )

    assert resp.status_code == 400
    assert resp.json()["detail"]["error_code"] == "INVALID_INPUT"


@pytest.mark.asyncio
async def test_new_word_notifies_mentioned_users(client, db, make_user, auth_headers, dispatcher):
    author = await make_user("paul")
    silas = await make_user("silas")

    resp = await client.post(
        "/api/words", json={"content": "Encouraged by @silas and @paul today"}, headers=auth_headers(author)
    )
    await dispatcher.join()

    assert resp.status_code == 201
    word_id = ObjectId(resp.json()["_id"])
    notifications = await db[NOTIFICATIONS].find({}).to_list(length=None)
    assert len(notifications) == 1
    assert notifications[0]["userId"] == silas
    assert notifications[0]["type"] == "mention"
    assert notifications[0]["wordId"] == word_id


@pytest.mark.asyncio
async def test_create_and_fetch_faith_story(client, make_user, auth_headers):
    user = await make_user("lydia")

    created = await client.post(
        "/api/faith-stories", json={"title": "Provision", "content": "God provided"}, headers=auth_headers(user)
    )
    assert created.status_code == 201
    assert created.json()["likedBy"] == []

    fetched = await client.get(f"/api/faith-stories/{created.json()['_id']}")
    assert fetched.status_code == 200
    assert fetched.json()["title"] == "Provision"


@pytest.mark.asyncio
async def test_fetch_missing_prayer(client):
    resp = await client.get(f"/api/prayers/{ObjectId()}")
    assert resp.status_code == 404

    resp = await client.get("/api/prayers/nope")
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_prayer_posts_are_rate_limited(client, make_user, auth_headers):
    user = await make_user("lydia")

    for i in range(settings.PRAYER_POST_LIMIT):
        resp = await client.post("/api/prayers", json={"content": f"Prayer {i}"}, headers=auth_headers(user))
        assert resp.status_code == 201

    resp = await client.post("/api/prayers", json={"content": "One more"}, headers=auth_headers(user))
    assert resp.status_code == 429
