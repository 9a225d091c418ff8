"""Bulk upsert of feed items in bounded write groups."""

from __future__ import annotations

import logging
from collections import Counter
from typing import Optional, Sequence

from matchfeed.domain.feed.models import FeedItem
from matchfeed.obs import metrics as obs_metrics
from matchfeed.settings import settings
from matchfeed.store import Store, get_store

_LOG = logging.getLogger(__name__)


class FeedWriter:
    """Persists feed items keyed by (owner, post) so rewrites overwrite."""

    def __init__(self, store: Optional[Store] = None, *, group_size: Optional[int] = None) -> None:
        self._store = store
        self.group_size = max(1, group_size or settings.feed_write_group_size)

    @property
    def store(self) -> Store:
        return self._store or get_store()

    async def write(self, items: Sequence[FeedItem]) -> int:
        if not items:
            return 0
        for start in range(0, len(items), self.group_size):
            group = items[start : start + self.group_size]
            await self.store.upsert_feed_items(group)
            _LOG.debug(
                "feed_writer.group_written",
                extra={"size": len(group), "offset": start},
            )
        for reason, count in Counter(item.reason.value for item in items).items():
            obs_metrics.inc_items_written(reason, count)
        return len(items)
