from datetime import datetime, timezone

import pytest
from bson import ObjectId

from beliefted.core.config import settings
from beliefted.db.mongodb import FAITH_STORIES, NOTIFICATIONS, PRAYERS, WORDS


async def seed_item(db, collection, owner_id, **fields):
    now = datetime.now(timezone.utc)
    result = await db[collection].insert_one(
        {"userId": owner_id, "content": "Lord, guide us", "createdAt": now, "updatedAt": now, **fields}
    )
    return result.inserted_id


@pytest.mark.asyncio
async def test_pray_toggles_on_and_off(client, db, make_user, auth_headers):
    owner = await make_user("lydia")
    user = await make_user("paul")
    prayer_id = await seed_item(db, PRAYERS, owner, prayedBy=[])

    first = await client.post(f"/api/prayers/{prayer_id}/pray", headers=auth_headers(user))
    assert first.status_code == 200
    assert first.json() == {"prayed": True, "count": 1}

    second = await client.post(f"/api/prayers/{prayer_id}/pray", headers=auth_headers(user))
    assert second.json() == {"prayed": False, "count": 0}

    stored = await db[PRAYERS].find_one({"_id": prayer_id})
    assert stored["prayedBy"] == []


@pytest.mark.asyncio
async def test_count_matches_members_across_users(client, db, make_user, auth_headers):
    owner = await make_user("lydia")
    users = [await make_user(f"member{i}") for i in range(3)]
    word_id = await seed_item(db, WORDS, owner, likedBy=[], savedBy=[])

    counts = []
    for user in users:
        resp = await client.post(f"/api/words/{word_id}/like", headers=auth_headers(user))
        counts.append(resp.json()["count"])
    assert counts == [1, 2, 3]

    resp = await client.post(f"/api/words/{word_id}/like", headers=auth_headers(users[1]))
    assert resp.json() == {"liked": False, "count": 2}
    stored = await db[WORDS].find_one({"_id": word_id})
    assert set(stored["likedBy"]) == {users[0], users[2]}


@pytest.mark.asyncio
async def test_missing_interaction_set_starts_empty(client, db, make_user, auth_headers):
    owner = await make_user("lydia")
    user = await make_user("paul")
    story_id = await seed_item(db, FAITH_STORIES, owner, title="Healed")

    resp = await client.post(f"/api/faith-stories/{story_id}/like", headers=auth_headers(user))

    assert resp.json() == {"liked": True, "count": 1}


@pytest.mark.asyncio
async def test_first_interaction_notifies_owner(client, db, make_user, auth_headers, dispatcher):
    owner = await make_user("lydia")
    user = await make_user("paul")
    prayer_id = await seed_item(db, PRAYERS, owner, prayedBy=[])

    await client.post(f"/api/prayers/{prayer_id}/pray", headers=auth_headers(user))
    await client.post(f"/api/prayers/{prayer_id}/pray", headers=auth_headers(user))
    await dispatcher.join()

    notifications = await db[NOTIFICATIONS].find({"userId": owner}).to_list(length=None)
    assert len(notifications) == 1
    assert notifications[0]["type"] == "pray"
    assert notifications[0]["actorId"] == user
    assert notifications[0]["prayerId"] == prayer_id


@pytest.mark.asyncio
async def test_own_content_never_notifies(client, db, make_user, auth_headers, dispatcher):
    owner = await make_user("lydia")
    story_id = await seed_item(db, FAITH_STORIES, owner, likedBy=[])

    resp = await client.post(f"/api/faith-stories/{story_id}/like", headers=auth_headers(owner))
    await dispatcher.join()

    assert resp.json() == {"liked": True, "count": 1}
    assert await db[NOTIFICATIONS].count_documents({}) == 0


@pytest.mark.asyncio
async def test_saving_a_word_is_silent(client, db, make_user, auth_headers, dispatcher):
    owner = await make_user("lydia")
    user = await make_user("paul")
    word_id = await seed_item(db, WORDS, owner, likedBy=[], savedBy=[])

    resp = await client.post(f"/api/words/{word_id}/save", headers=auth_headers(user))
    await dispatcher.join()

    assert resp.json() == {"saved": True, "count": 1}
    assert await db[NOTIFICATIONS].count_documents({}) == 0


@pytest.mark.asyncio
async def test_word_like_notification_references_word(client, db, make_user, auth_headers, dispatcher):
    owner = await make_user("lydia")
    user = await make_user("paul")
    word_id = await seed_item(db, WORDS, owner, likedBy=[], savedBy=[])

    await client.post(f"/api/words/{word_id}/like", headers=auth_headers(user))
    await dispatcher.join()

    notification = await db[NOTIFICATIONS].find_one({"userId": owner})
    assert notification["type"] == "word_like"
    assert notification["wordId"] == word_id


@pytest.mark.asyncio
async def test_wrapped_ids_are_accepted(client, db, make_user, auth_headers):
    owner = await make_user("lydia")
    prayer_id = await seed_item(db, PRAYERS, owner, prayedBy=[])

    resp = await client.post(f'/api/prayers/ObjectId("{prayer_id}")/pray', headers=auth_headers(owner))

    assert resp.status_code == 200
    assert resp.json()["prayed"] is True


@pytest.mark.asyncio
async def test_requires_session(client, db, make_user):
    owner = await make_user("lydia")
    prayer_id = await seed_item(db, PRAYERS, owner, prayedBy=[])

    resp = await client.post(f"/api/prayers/{prayer_id}/pray")
    assert resp.status_code == 401
    assert resp.json()["detail"]["error_code"] == "UNAUTHORIZED"

    resp = await client.post(f"/api/prayers/{prayer_id}/pray", headers={"Authorization": "Bearer not-a-jwt"})
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_malformed_id_is_rejected(client, make_user, auth_headers):
    user = await make_user("paul")

    resp = await client.post("/api/words/12345/like", headers=auth_headers(user))

    assert resp.status_code == 400
    assert resp.json()["detail"]["message"] == "Invalid word id"


@pytest.mark.asyncio
async def test_missing_item_is_not_found(client, db, make_user, auth_headers):
    user = await make_user("paul")

    resp = await client.post(f"/api/faith-stories/{ObjectId()}/like", headers=auth_headers(user))

    assert resp.status_code == 404
    assert resp.json()["detail"]["message"] == "Story not found"


@pytest.mark.asyncio
async def test_interactions_are_rate_limited(client, db, make_user, auth_headers):
    owner = await make_user("lydia")
    user = await make_user("paul")
    prayer_id = await seed_item(db, PRAYERS, owner, prayedBy=[])

    for _ in range(settings.INTERACTION_LIMIT):
        resp = await client.post(f"/api/prayers/{prayer_id}/pray", headers=auth_headers(user))
        assert resp.status_code == 200

    resp = await client.post(f"/api/prayers/{prayer_id}/pray", headers=auth_headers(user))
    assert resp.status_code == 429
    assert int(resp.headers["Retry-After"]) >= 1

    # Another user has a separate window
    resp = await client.post(f"/api/prayers/{prayer_id}/pray", headers=auth_headers(owner))
    assert resp.status_code == 200
