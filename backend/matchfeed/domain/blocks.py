"""Block registry access and block management.

Blocks are stored as a forward edge (``blocks``) plus a reverse edge
(``blocked_by``) so either side resolves its exclusion set with two keyed
reads. The exclusion set is loaded fresh for every operation.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

from matchfeed.domain.exceptions import (
	BlockedError,
	BlockLookupError,
	DependencyError,
	NotFoundError,
	RateLimitError,
	ValidationError,
)
from matchfeed.infra import rate_limit
from matchfeed.obs import metrics as obs_metrics
from matchfeed.settings import settings
from matchfeed.store import Store, get_store

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class BlockList:
	blocked_by_me: list[str]
	blocked_me: list[str]

	@property
	def all_ids(self) -> list[str]:
		return sorted(set(self.blocked_by_me) | set(self.blocked_me))


class BlockRegistry:
	def __init__(self, store: Optional[Store] = None) -> None:
		self._store = store

	@property
	def store(self) -> Store:
		return self._store or get_store()

	async def load_exclusion_set(self, user_id: str) -> frozenset[str]:
		"""Union of users ``user_id`` blocked and users who blocked ``user_id``.

		Raises ``BlockLookupError`` when either side cannot be read; callers must
		treat that as "exclude everyone".
		"""

		try:
			forward, reverse = await asyncio.gather(
				self.store.list_blocks(user_id),
				self.store.list_blocked_by(user_id),
			)
		except Exception as exc:
			raise BlockLookupError(user_id) from exc
		return frozenset(forward) | frozenset(reverse)

	async def is_blocked_between(self, user_a: str, user_b: str) -> bool:
		return user_b in await self.load_exclusion_set(user_a)

	async def ensure_not_blocked(self, actor_id: str, target_id: str) -> None:
		try:
			blocked = await self.is_blocked_between(actor_id, target_id)
		except BlockLookupError as exc:
			obs_metrics.BLOCK_LOOKUP_FAILURES.labels(path="guard").inc()
			logger.warning("blocks.guard_lookup_failed", extra={"user_id": actor_id, "target_id": target_id})
			raise DependencyError("block registry unavailable") from exc
		if blocked:
			raise BlockedError()


class BlockService:
	def __init__(self, store: Optional[Store] = None, registry: Optional[BlockRegistry] = None) -> None:
		self._store = store
		self.registry = registry or BlockRegistry(store)

	@property
	def store(self) -> Store:
		return self._store or get_store()

	async def block_user(self, actor_id: str, target_id: str) -> bool:
		if not target_id:
			raise ValidationError("target_required")
		if actor_id == target_id:
			raise ValidationError("cannot_block_self")
		if not await rate_limit.allow("block", actor_id, limit=settings.block_per_minute):
			raise RateLimitError("block_rate_limited")
		if await self.store.get_profile(target_id) is None:
			raise NotFoundError("user_not_found")
		created = await self.store.add_block(actor_id, target_id)
		obs_metrics.inc_block("block")
		logger.info("blocks.created", extra={"user_id": actor_id, "target_id": target_id, "new": created})
		return created

	async def unblock_user(self, actor_id: str, target_id: str) -> bool:
		if not target_id:
			raise ValidationError("target_required")
		if not await rate_limit.allow("block", actor_id, limit=settings.block_per_minute):
			raise RateLimitError("block_rate_limited")
		removed = await self.store.remove_block(actor_id, target_id)
		obs_metrics.inc_block("unblock")
		logger.info("blocks.removed", extra={"user_id": actor_id, "target_id": target_id, "existed": removed})
		return removed

	async def list_blocked(self, user_id: str) -> BlockList:
		forward, reverse = await asyncio.gather(
			self.store.list_blocks(user_id),
			self.store.list_blocked_by(user_id),
		)
		return BlockList(blocked_by_me=sorted(forward), blocked_me=sorted(reverse))
