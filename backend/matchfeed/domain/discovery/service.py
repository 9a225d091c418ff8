"""Service layer for Discovery search."""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from typing import Optional

from matchfeed.domain.blocks import BlockRegistry
from matchfeed.domain.discovery import pipeline, policy, schemas
from matchfeed.domain.discovery.retrieval import CandidateRetriever
from matchfeed.domain.exceptions import BlockLookupError
from matchfeed.infra.auth import AuthenticatedUser
from matchfeed.obs import metrics as obs_metrics
from matchfeed.store import Store, get_store

logger = logging.getLogger(__name__)


class DiscoveryService:
	"""Two-stage search: store narrowing, then in-process refine/rank/paginate."""

	def __init__(
		self,
		store: Optional[Store] = None,
		*,
		registry: Optional[BlockRegistry] = None,
		retriever: Optional[CandidateRetriever] = None,
	) -> None:
		self._store = store
		self.registry = registry or BlockRegistry(store)
		self.retriever = retriever or CandidateRetriever(store)

	@property
	def store(self) -> Store:
		return self._store or get_store()

	async def search(
		self,
		auth_user: AuthenticatedUser,
		request: schemas.SearchRequest,
		*,
		now: Optional[datetime] = None,
	) -> schemas.SearchResponse:
		await policy.enforce_rate_limit(auth_user.id)
		now = now or datetime.now(timezone.utc)
		started = time.perf_counter()
		try:
			excluded = await self.registry.load_exclusion_set(auth_user.id)
		except BlockLookupError:
			obs_metrics.BLOCK_LOOKUP_FAILURES.labels(path="search").inc()
			obs_metrics.inc_search("fail_closed")
			logger.warning("discovery.block_lookup_failed", extra={"user_id": auth_user.id})
			return schemas.SearchResponse(profiles=[])

		requester = await self.store.get_profile(auth_user.id)
		pool = await self.retriever.retrieve(request.filters, requester_id=auth_user.id, today=now.date())
		page = pipeline.run(
			pool,
			request,
			requester_id=auth_user.id,
			requester=requester,
			excluded=excluded,
			now=now,
		)
		obs_metrics.SEARCH_LATENCY.observe(time.perf_counter() - started)
		obs_metrics.inc_search("ok")
		logger.info(
			"discovery.search",
			extra={
				"user_id": auth_user.id,
				"pool_size": len(pool),
				"matched": page.total_estimate,
				"returned": len(page.items),
				"sort": request.sort.token,
			},
		)
		return schemas.SearchResponse(
			profiles=[policy.project_result(candidate, now=now) for candidate in page.items],
			has_more=page.has_more,
			next_cursor=page.next_cursor,
			total_estimate=page.total_estimate,
		)
