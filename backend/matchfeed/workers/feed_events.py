"""Redis stream consumer that runs fanout and backfill for feed events."""

from __future__ import annotations

import asyncio
import logging
from typing import Dict, Optional

from matchfeed.domain.feed import events
from matchfeed.domain.feed.backfill import BackfillEngine
from matchfeed.domain.feed.fanout import FanoutEngine
from matchfeed.infra.redis import redis_client
from matchfeed.settings import settings
from matchfeed.store import Store

_LOG = logging.getLogger(__name__)


class FeedEventsWorker:
	"""Consumes feed events and dispatches them to the fanout and backfill engines."""

	def __init__(
		self,
		*,
		store: Optional[Store] = None,
		fanout: Optional[FanoutEngine] = None,
		backfill: Optional[BackfillEngine] = None,
		stream: Optional[str] = None,
		batch_size: int = 100,
		poll_interval: float = 1.0,
		block_ms: int = 1000,
	) -> None:
		self.fanout = fanout or FanoutEngine(store)
		self.backfill = backfill or BackfillEngine(store)
		self.stream = stream or settings.feed_events_stream
		self.batch_size = batch_size
		self.poll_interval = poll_interval
		self.block_ms = block_ms
		self._last_id = "0-0"
		self._running = False

	async def run_forever(self) -> None:
		self._running = True
		while self._running:
			try:
				processed = await self.process_once()
			except asyncio.CancelledError:
				raise
			except Exception:
				_LOG.exception("feed_events_worker.read_failed", extra={"stream": self.stream})
				processed = 0
			if processed == 0:
				await asyncio.sleep(self.poll_interval)

	def stop(self) -> None:
		self._running = False

	async def process_once(self) -> int:
		streams: Dict[str, str] = {self.stream: self._last_id}
		messages = await redis_client.xread(streams=streams, count=self.batch_size, block=self.block_ms)
		if not messages:
			return 0
		processed = 0
		for _stream_name, entries in messages:
			for entry_id, payload in entries:
				await self._handle_event(entry_id, dict(payload))
				self._last_id = entry_id
				processed += 1
		return processed

	async def _handle_event(self, entry_id: str, payload: dict[str, str]) -> None:
		event = payload.get("event")
		try:
			if event == events.EVENT_POST_CREATED:
				post_id = payload["post_id"]
			elif event == events.EVENT_ACCESS_GRANTED:
				author_id, viewer_id = payload["author_id"], payload["viewer_id"]
			elif event == events.EVENT_ONBOARDING_COMPLETED:
				user_id = payload["user_id"]
			else:
				_LOG.debug("feed_events_worker.ignored", extra={"entry_id": entry_id, "event": event})
				return
		except KeyError:
			_LOG.warning("feed_events_worker.invalid_payload", extra={"entry_id": entry_id, "event": event})
			return
		try:
			if event == events.EVENT_POST_CREATED:
				await self.fanout.fanout_post(post_id)
			elif event == events.EVENT_ACCESS_GRANTED:
				await self.backfill.backfill_private_access(author_id, viewer_id)
			else:
				await self.backfill.backfill_new_user(user_id)
		except Exception:
			# Not retried; the entry is acknowledged by advancing the cursor.
			_LOG.exception("feed_events_worker.handler_failed", extra={"entry_id": entry_id, "event": event})


__all__ = ["FeedEventsWorker"]
