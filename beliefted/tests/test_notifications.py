import asyncio
import json

import httpx
import pytest
from bson import ObjectId

from beliefted.db.mongodb import NOTIFICATIONS
from beliefted.models.notification import NotificationEvent, NotificationType
from beliefted.services.notifications import NotificationDispatcher, NotificationFanout
from beliefted.services.push import PushClient, register_token


class BrokenFanout:
    async def fan_out(self, event):
        raise RuntimeError("database unavailable")


@pytest.mark.asyncio
async def test_direct_event_notifies_recipient(db, make_user):
    actor = await make_user("paul")
    owner = await make_user("lydia")
    item_id = ObjectId()
    event = NotificationEvent.direct(
        NotificationType.PRAY, actor_id=actor, recipient_id=owner, reference_field="prayerId", item_id=item_id
    )

    written = await NotificationFanout(db).fan_out(event)

    assert len(written) == 1
    stored = await db[NOTIFICATIONS].find_one({"userId": owner})
    assert stored["actorId"] == actor
    assert stored["type"] == "pray"
    assert stored["prayerId"] == item_id
    assert stored["readAt"] is None


@pytest.mark.asyncio
async def test_direct_event_to_self_is_dropped(db, make_user):
    actor = await make_user("paul")
    event = NotificationEvent.direct(NotificationType.FOLLOW, actor_id=actor, recipient_id=actor)

    assert await NotificationFanout(db).fan_out(event) == []
    assert await db[NOTIFICATIONS].count_documents({}) == 0


@pytest.mark.asyncio
async def test_mentions_resolve_known_users_except_actor(db, make_user):
    actor = await make_user("paul")
    silas = await make_user("silas")
    timothy = await make_user("timothy")
    event = NotificationEvent.mentions(
        "with @Silas and @timothy, not @paul or @nobody", actor_id=actor, reference_field="wordId", item_id=ObjectId()
    )

    recipients = await NotificationFanout(db).resolve_recipients(event)

    assert set(recipients) == {silas, timothy}


@pytest.mark.asyncio
async def test_mention_event_without_mentions_writes_nothing(db, make_user):
    actor = await make_user("paul")
    event = NotificationEvent.mentions("nobody tagged here", actor_id=actor)

    assert await NotificationFanout(db).fan_out(event) == []


@pytest.mark.asyncio
async def test_partial_insert_failure_keeps_the_rest(db, make_user):
    actor = await make_user("paul")
    anna = await make_user("anna")
    bob = await make_user("bob")
    await db[NOTIFICATIONS].create_index("userId", unique=True)
    await db[NOTIFICATIONS].insert_one({"userId": anna, "type": "follow"})
    event = NotificationEvent.mentions("@anna @bob", actor_id=actor, reference_field="wordId", item_id=ObjectId())

    written = await NotificationFanout(db).fan_out(event)

    assert [doc["userId"] for doc in written] == [bob]
    assert await db[NOTIFICATIONS].count_documents({"userId": bob, "type": "mention"}) == 1
    assert await db[NOTIFICATIONS].count_documents({"userId": anna, "type": "mention"}) == 0


@pytest.mark.asyncio
async def test_fan_out_pushes_each_written_notification(db, make_user):
    actor = await make_user("paul", name="Paul")
    silas = await make_user("silas")
    timothy = await make_user("timothy")
    await register_token(db, silas, "silas-phone", "pytest")
    await register_token(db, timothy, "timothy-phone", "pytest")

    sent = []

    def handler(request: httpx.Request) -> httpx.Response:
        sent.append(json.loads(request.content)["message"])
        return httpx.Response(200, json={"name": "projects/test/messages/1"})

    push = PushClient(project_id="test", access_token="token-123", transport=httpx.MockTransport(handler))
    await push.start()
    event = NotificationEvent.mentions(
        "praying with @silas and @timothy", actor_id=actor, reference_field="wordId", item_id=ObjectId()
    )

    written = await NotificationFanout(db, push).fan_out(event)
    await push.stop()

    assert len(written) == 2
    assert sorted(message["token"] for message in sent) == ["silas-phone", "timothy-phone"]
    assert {message["data"]["title"] for message in sent} == {"Paul mentioned you"}
    assert sent[0]["data"]["body"] == "praying with @silas and @timothy"
    assert sent[0]["data"]["url"] == "/notifications"


@pytest.mark.asyncio
async def test_disabled_push_client_is_skipped(db, make_user):
    actor = await make_user("paul")
    owner = await make_user("lydia")
    await register_token(db, owner, "lydia-phone", "pytest")
    event = NotificationEvent.direct(NotificationType.FOLLOW, actor_id=actor, recipient_id=owner)

    written = await NotificationFanout(db, PushClient()).fan_out(event)

    assert len(written) == 1


@pytest.mark.asyncio
async def test_dispatcher_runs_submitted_events(db, make_user, dispatcher):
    actor = await make_user("paul")
    owner = await make_user("lydia")

    assert dispatcher.running
    assert dispatcher.submit(NotificationEvent.direct(NotificationType.FOLLOW, actor_id=actor, recipient_id=owner))
    await dispatcher.join()

    assert await db[NOTIFICATIONS].count_documents({"userId": owner, "type": "follow"}) == 1
    assert not dispatcher.failures


@pytest.mark.asyncio
async def test_dispatcher_records_failures_without_raising():
    dispatcher = NotificationDispatcher(BrokenFanout())
    dispatcher.start()
    event = NotificationEvent.direct(NotificationType.PRAY, actor_id=ObjectId(), recipient_id=ObjectId())

    dispatcher.submit(event)
    await dispatcher.join()
    await dispatcher.stop()

    assert len(dispatcher.failures) == 1
    failed_event, error = dispatcher.failures[0]
    assert failed_event is event
    assert isinstance(error, RuntimeError)


@pytest.mark.asyncio
async def test_full_queue_drops_event_and_records_it():
    dispatcher = NotificationDispatcher(BrokenFanout(), maxsize=1)
    first = NotificationEvent.direct(NotificationType.PRAY, actor_id=ObjectId(), recipient_id=ObjectId())
    second = NotificationEvent.direct(NotificationType.PRAY, actor_id=ObjectId(), recipient_id=ObjectId())

    assert dispatcher.submit(first) is True
    assert dispatcher.submit(second) is False

    failed_event, error = dispatcher.failures[-1]
    assert failed_event is second
    assert isinstance(error, asyncio.QueueFull)


@pytest.mark.asyncio
async def test_stop_drains_the_queue(db, make_user):
    actor = await make_user("paul")
    owner = await make_user("lydia")
    dispatcher = NotificationDispatcher(NotificationFanout(db))
    dispatcher.start()

    for _ in range(3):
        dispatcher.submit(NotificationEvent.direct(NotificationType.PRAY, actor_id=actor, recipient_id=owner))
    await dispatcher.stop()

    assert not dispatcher.running
    assert await db[NOTIFICATIONS].count_documents({"userId": owner}) == 3
