"""Fanout of a new post into recipient feeds.

Pipeline: recipient resolution, projection, bulk upsert. The author's own
item is written synchronously at creation by ``write_own_item``; everything
else runs here, usually from the feed events worker.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from matchfeed.domain.blocks import BlockRegistry
from matchfeed.domain.exceptions import BlockLookupError
from matchfeed.domain.feed import projection
from matchfeed.domain.feed.models import FeedReason, Post
from matchfeed.domain.feed.recipients import resolve_recipients
from matchfeed.domain.feed.writer import FeedWriter
from matchfeed.obs import metrics as obs_metrics
from matchfeed.store import Store, get_store

_LOG = logging.getLogger(__name__)


@dataclass(slots=True)
class FanoutResult:
    post_id: str
    recipients: int = 0
    written: int = 0
    truncated: bool = False
    skipped: Optional[str] = None


class FanoutEngine:
    def __init__(
        self,
        store: Optional[Store] = None,
        *,
        registry: Optional[BlockRegistry] = None,
        writer: Optional[FeedWriter] = None,
    ) -> None:
        self._store = store
        self.registry = registry or BlockRegistry(store)
        self.writer = writer or FeedWriter(store)

    @property
    def store(self) -> Store:
        return self._store or get_store()

    async def write_own_item(self, post: Post, *, now: Optional[datetime] = None) -> None:
        item = projection.project_feed_item(post, post.author_id, FeedReason.OWN, now=now)
        await self.writer.write([item])

    async def fanout_post(self, post: Post | str) -> FanoutResult:
        if isinstance(post, str):
            loaded = await self.store.get_post(post)
            if loaded is None:
                _LOG.debug("fanout.missing_post", extra={"post_id": post})
                return FanoutResult(post_id=post, skipped="missing")
            post = loaded
        if not post.is_active:
            return FanoutResult(post_id=post.id, skipped=post.status.value)

        obs_metrics.FEED_FANOUT_EVENTS.labels(visibility=post.visibility.value).inc()
        try:
            recipients = await resolve_recipients(post, store=self.store, registry=self.registry)
        except BlockLookupError:
            # Fail closed: nobody but the author (already written) sees the post.
            obs_metrics.BLOCK_LOOKUP_FAILURES.labels(path="fanout").inc()
            _LOG.error(
                "fanout.block_lookup_failed",
                extra={"post_id": post.id, "author_id": post.author_id, "visibility": post.visibility.value},
            )
            return FanoutResult(post_id=post.id, skipped="block_lookup_failed")
        except Exception:
            obs_metrics.FEED_FANOUT_FAILURES.inc()
            _LOG.exception(
                "fanout.failed",
                extra={
                    "post_id": post.id,
                    "author_id": post.author_id,
                    "visibility": post.visibility.value,
                    "recipients": 0,
                },
            )
            return FanoutResult(post_id=post.id, skipped="failed")

        if recipients.truncated:
            obs_metrics.FEED_FANOUT_TRUNCATED.inc()
        items = projection.project_many(post, recipients.pairs(), now=datetime.now(timezone.utc))
        try:
            written = await self.writer.write(items)
        except Exception:
            obs_metrics.FEED_FANOUT_FAILURES.inc()
            _LOG.exception(
                "fanout.write_failed",
                extra={"post_id": post.id, "author_id": post.author_id, "recipients": len(items)},
            )
            raise
        _LOG.info(
            "fanout.completed",
            extra={
                "post_id": post.id,
                "author_id": post.author_id,
                "visibility": post.visibility.value,
                "recipients": len(items),
                "scanned": recipients.scanned,
                "truncated": recipients.truncated,
            },
        )
        return FanoutResult(
            post_id=post.id,
            recipients=len(items),
            written=written,
            truncated=recipients.truncated,
        )
