"""Redis stream events that trigger fanout and backfill."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from matchfeed.infra.redis import redis_client
from matchfeed.obs import metrics as obs_metrics
from matchfeed.settings import settings

_LOG = logging.getLogger(__name__)

EVENT_POST_CREATED = "post.created"
EVENT_ACCESS_GRANTED = "access.granted"
EVENT_ONBOARDING_COMPLETED = "onboarding.completed"


def _now_ts() -> str:
    return datetime.now(timezone.utc).isoformat()


async def _publish(event: str, fields: dict[str, Any]) -> bool:
    payload: dict[str, Any] = {"event": event, "ts": _now_ts(), **fields}
    try:
        await redis_client.xadd(settings.feed_events_stream, payload)
    except Exception:
        # Publishing never fails the triggering operation.
        obs_metrics.FEED_EVENTS_PUBLISH_FAILURES.labels(event=event).inc()
        _LOG.exception("feed_events.publish_failed", extra={"event": event, **fields})
        return False
    return True


async def publish_post_created(*, post_id: str, author_id: str) -> bool:
    return await _publish(EVENT_POST_CREATED, {"post_id": post_id, "author_id": author_id})


async def publish_access_granted(*, author_id: str, viewer_id: str) -> bool:
    return await _publish(EVENT_ACCESS_GRANTED, {"author_id": author_id, "viewer_id": viewer_id})


async def publish_onboarding_completed(*, user_id: str) -> bool:
    return await _publish(EVENT_ONBOARDING_COMPLETED, {"user_id": user_id})
