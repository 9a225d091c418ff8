"""Retroactive fanout for new users and new private-access grants.

Both passes are best effort: failures are logged and counted, never raised to
the operation that triggered them.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from matchfeed.domain import geo, matching
from matchfeed.domain.blocks import BlockRegistry
from matchfeed.domain.exceptions import BlockLookupError
from matchfeed.domain.feed import projection
from matchfeed.domain.feed.models import FeedReason, Post
from matchfeed.domain.feed.writer import FeedWriter
from matchfeed.domain.profiles import Profile
from matchfeed.obs import metrics as obs_metrics
from matchfeed.settings import settings
from matchfeed.store import Store, get_store

_LOG = logging.getLogger(__name__)

TRIGGER_ONBOARDING = "onboarding"
TRIGGER_PRIVATE_ACCESS = "private_access"


class BackfillEngine:
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

    async def backfill_new_user(self, user_id: str, *, now: Optional[datetime] = None) -> int:
        now = now or datetime.now(timezone.utc)
        try:
            written = await self._backfill_new_user(user_id, now=now)
        except BlockLookupError:
            obs_metrics.BLOCK_LOOKUP_FAILURES.labels(path="backfill").inc()
            obs_metrics.inc_backfill(TRIGGER_ONBOARDING, "fail_closed")
            _LOG.warning("backfill.block_lookup_failed", extra={"user_id": user_id, "trigger": TRIGGER_ONBOARDING})
            return 0
        except Exception:
            obs_metrics.inc_backfill(TRIGGER_ONBOARDING, "error")
            _LOG.exception("backfill.failed", extra={"user_id": user_id, "trigger": TRIGGER_ONBOARDING})
            return 0
        obs_metrics.inc_backfill(TRIGGER_ONBOARDING, "ok")
        _LOG.info("backfill.completed", extra={"user_id": user_id, "trigger": TRIGGER_ONBOARDING, "written": written})
        return written

    async def _backfill_new_user(self, user_id: str, *, now: datetime) -> int:
        viewer = await self.store.get_profile(user_id)
        if viewer is None or not viewer.is_searchable:
            return 0
        excluded = await self.registry.load_exclusion_set(user_id)
        limit = settings.backfill_public_limit
        since = now - timedelta(days=settings.backfill_lookback_days)
        # Over-fetch so the in-process checks below still leave a full batch.
        posts = await self.store.list_recent_public_posts(
            since=since,
            limit=limit * settings.backfill_overfetch_factor,
        )
        selected: list[Post] = []
        for post in posts:
            if self._eligible(post, viewer, excluded):
                selected.append(post)
                if len(selected) >= limit:
                    break
        items = [projection.project_feed_item(post, user_id, FeedReason.PUBLIC, now=now) for post in selected]
        return await self.writer.write(items)

    @staticmethod
    def _eligible(post: Post, viewer: Profile, excluded: frozenset[str]) -> bool:
        if post.author_id == viewer.user_id or post.author_id in excluded:
            return False
        if not matching.is_base_match(post.author, viewer):
            return False
        return geo.within_radius(post.author.location, viewer.location, settings.fanout_radius_miles)

    async def backfill_private_access(self, author_id: str, viewer_id: str, *, now: Optional[datetime] = None) -> int:
        now = now or datetime.now(timezone.utc)
        try:
            if await self.registry.is_blocked_between(author_id, viewer_id):
                obs_metrics.inc_backfill(TRIGGER_PRIVATE_ACCESS, "blocked")
                return 0
            posts = await self.store.list_recent_private_posts(author_id, limit=settings.backfill_private_limit)
            items = [projection.project_feed_item(post, viewer_id, FeedReason.APPROVED, now=now) for post in posts]
            written = await self.writer.write(items)
        except BlockLookupError:
            obs_metrics.BLOCK_LOOKUP_FAILURES.labels(path="backfill").inc()
            obs_metrics.inc_backfill(TRIGGER_PRIVATE_ACCESS, "fail_closed")
            _LOG.warning(
                "backfill.block_lookup_failed",
                extra={"author_id": author_id, "viewer_id": viewer_id, "trigger": TRIGGER_PRIVATE_ACCESS},
            )
            return 0
        except Exception:
            obs_metrics.inc_backfill(TRIGGER_PRIVATE_ACCESS, "error")
            _LOG.exception(
                "backfill.failed",
                extra={"author_id": author_id, "viewer_id": viewer_id, "trigger": TRIGGER_PRIVATE_ACCESS},
            )
            return 0
        obs_metrics.inc_backfill(TRIGGER_PRIVATE_ACCESS, "ok")
        _LOG.info(
            "backfill.completed",
            extra={
                "author_id": author_id,
                "viewer_id": viewer_id,
                "trigger": TRIGGER_PRIVATE_ACCESS,
                "written": written,
            },
        )
        return written
