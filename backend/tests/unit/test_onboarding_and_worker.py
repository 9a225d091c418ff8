from __future__ import annotations

import logging

import pytest

from matchfeed.domain.exceptions import NotFoundError
from matchfeed.domain.feed import events, schemas
from matchfeed.domain.feed.models import FeedReason
from matchfeed.domain.feed.service import PostService
from matchfeed.domain.profile_service import ProfileService
from matchfeed.domain.profiles import Coordinates
from matchfeed.workers.feed_events import FeedEventsWorker

DETROIT = Coordinates(latitude=42.33, longitude=-83.05)
ANN_ARBOR = Coordinates(latitude=42.28, longitude=-83.74)


@pytest.fixture
def author(make_profile):
    return make_profile("author", gender_identity="woman", support_orientation="providing", location=DETROIT)


@pytest.fixture
def newcomer(make_profile):
    return make_profile(
        "newcomer",
        gender_identity="man",
        support_orientation="receiving",
        interested_in={"women"},
        location=ANN_ARBOR,
        onboarding_completed=False,
    )


def _post_payload(visibility: str = "public") -> schemas.PostCreate:
    return schemas.PostCreate(visibility=visibility, content={"type": "text", "text": "Tigers game tonight"})


@pytest.mark.asyncio
async def test_onboarding_completion_backfills_feed(author, newcomer, seed, memory_store):
    await seed(author, newcomer)
    post = await PostService().create_post("author", _post_payload())
    assert ("newcomer", post.id) not in memory_store.feed_items

    result = await ProfileService().complete_onboarding("newcomer")

    assert result.searchable is True
    assert result.already_completed is False
    assert memory_store.feed_items[("newcomer", post.id)].reason == FeedReason.PUBLIC


@pytest.mark.asyncio
async def test_onboarding_is_idempotent(author, newcomer, seed, fake_redis):
    await seed(author, newcomer)
    service = ProfileService(inline_dispatch=False)
    await service.complete_onboarding("newcomer")
    again = await service.complete_onboarding("newcomer")

    assert again.already_completed is True
    entries = await fake_redis.xrange("feed:events")
    assert [payload["event"] for _, payload in entries] == ["onboarding.completed"]


@pytest.mark.asyncio
async def test_onboarding_unknown_profile():
    with pytest.raises(NotFoundError):
        await ProfileService().complete_onboarding("ghost")


@pytest.mark.asyncio
async def test_worker_processes_queued_events(author, newcomer, make_profile, seed, memory_store):
    viewer = make_profile("viewer", gender_identity="man", interested_in={"women"}, location=ANN_ARBOR)
    await seed(author, newcomer, viewer)
    posts = PostService(inline_dispatch=False)
    public = await posts.create_post("author", _post_payload())
    assert ("viewer", public.id) not in memory_store.feed_items
    await ProfileService(inline_dispatch=False).complete_onboarding("newcomer")

    worker = FeedEventsWorker(block_ms=10)
    processed = await worker.process_once()

    assert processed == 2
    assert memory_store.feed_items[("viewer", public.id)].reason == FeedReason.PUBLIC
    assert memory_store.feed_items[("newcomer", public.id)].reason == FeedReason.PUBLIC
    # The cursor advanced past both entries.
    assert await worker.process_once() == 0


@pytest.mark.asyncio
async def test_worker_tolerates_bad_payloads(author, seed, memory_store, fake_redis):
    await seed(author)
    await fake_redis.xadd("feed:events", {"event": events.EVENT_POST_CREATED})
    await fake_redis.xadd("feed:events", {"event": "something.else"})
    await fake_redis.xadd("feed:events", {"event": events.EVENT_ACCESS_GRANTED, "author_id": "author", "viewer_id": "nobody"})

    worker = FeedEventsWorker(block_ms=10)
    assert await worker.process_once() == 3
    assert memory_store.feed_items == {}


@pytest.mark.asyncio
async def test_publish_failure_is_swallowed(monkeypatch):
    from matchfeed.infra.redis import redis_client

    async def _boom(*args, **kwargs):
        raise ConnectionError("redis down")

    monkeypatch.setattr(redis_client.client, "xadd", _boom)
    assert await events.publish_post_created(post_id="p1", author_id="a1") is False


@pytest.mark.asyncio
async def test_access_granted_event_backfills(author, make_profile, seed, memory_store):
    await seed(author, make_profile("viewer"))
    posts = PostService(inline_dispatch=False)
    secret = await posts.create_post(
        "author",
        _post_payload("private"),
    )
    await posts.grant_private_access("author", "viewer")

    await FeedEventsWorker(block_ms=10).process_once()

    assert memory_store.feed_items[("viewer", secret.id)].reason == FeedReason.APPROVED


@pytest.mark.asyncio
async def test_worker_loop_survives_read_errors_until_stopped(memory_store):
    worker = FeedEventsWorker(store=memory_store, poll_interval=0)
    calls = []

    async def fake_process_once() -> int:
        calls.append(len(calls))
        if len(calls) == 1:
            raise RuntimeError("stream unavailable")
        worker.stop()
        return 0

    worker.process_once = fake_process_once

    await worker.run_forever()

    assert calls == [0, 1]


@pytest.mark.asyncio
async def test_worker_reports_handler_errors_separately_from_bad_payloads(memory_store, fake_redis, caplog):
    worker = FeedEventsWorker(store=memory_store, block_ms=10)

    async def _broken_fanout(post_id):
        raise KeyError("author")

    worker.fanout.fanout_post = _broken_fanout
    await fake_redis.xadd("feed:events", {"event": events.EVENT_POST_CREATED, "post_id": "p1"})
    await fake_redis.xadd("feed:events", {"event": events.EVENT_ONBOARDING_COMPLETED})

    with caplog.at_level(logging.WARNING, logger="matchfeed.workers.feed_events"):
        assert await worker.process_once() == 2

    messages = [record.getMessage() for record in caplog.records if record.name == "matchfeed.workers.feed_events"]
    assert messages == ["feed_events_worker.handler_failed", "feed_events_worker.invalid_payload"]
