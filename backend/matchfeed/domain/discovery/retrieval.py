"""Index-narrowing stage of Discovery search.

Only predicates the store can evaluate cheaply are pushed down here:
onboarding complete, searchable, gender identity membership, lifestyle
membership and the birth-date range. Everything else is applied in process by
``pipeline`` over the capped pool this module returns.
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
from datetime import date
from typing import Optional, Sequence

from matchfeed.domain.discovery.models import CandidateQuery
from matchfeed.domain.discovery.schemas import SearchFilters
from matchfeed.domain.profiles import LOWEST_TIER, PrivateData, Profile, birth_date_bounds
from matchfeed.obs import metrics as obs_metrics
from matchfeed.settings import settings
from matchfeed.store import Store, get_store

logger = logging.getLogger(__name__)


def build_query(
	filters: SearchFilters,
	*,
	requester_id: Optional[str],
	limit: int,
	today: Optional[date] = None,
) -> CandidateQuery:
	earliest, latest = birth_date_bounds(min_age=filters.min_age, max_age=filters.max_age, today=today)
	return CandidateQuery(
		exclude_user_id=requester_id,
		gender_identities=tuple(filters.gender_identity),
		lifestyles=tuple(filters.lifestyle),
		birth_date_min=earliest,
		birth_date_max=latest,
		limit=limit,
	)


class CandidateRetriever:
	def __init__(self, store: Optional[Store] = None, *, batch_size: Optional[int] = None) -> None:
		self._store = store
		self.batch_size = max(1, batch_size or settings.aux_read_batch_size)

	@property
	def store(self) -> Store:
		return self._store or get_store()

	async def retrieve(
		self,
		filters: SearchFilters,
		*,
		requester_id: Optional[str],
		limit: Optional[int] = None,
		today: Optional[date] = None,
	) -> list[Profile]:
		cap = limit or settings.discovery_pool_cap
		query = build_query(filters, requester_id=requester_id, limit=cap, today=today)
		profiles = await self.store.query_candidates(query)
		obs_metrics.SEARCH_POOL_SIZE.observe(len(profiles))
		return await self.enrich(profiles)

	async def enrich(self, profiles: Sequence[Profile]) -> list[Profile]:
		"""Attach reputation tier and completeness from the private partition.

		Reads go out in parallel groups of ``batch_size``; a failed or missing
		read leaves the candidate at the lowest tier.
		"""

		enriched: list[Profile] = []
		for start in range(0, len(profiles), self.batch_size):
			batch = profiles[start : start + self.batch_size]
			results = await asyncio.gather(
				*(self.store.get_private_data(profile.user_id) for profile in batch),
				return_exceptions=True,
			)
			for profile, result in zip(batch, results):
				enriched.append(self._apply_private(profile, result))
		return enriched

	def _apply_private(self, profile: Profile, result: object) -> Profile:
		if isinstance(result, BaseException):
			obs_metrics.REPUTATION_FALLBACKS.inc()
			logger.warning(
				"discovery.private_read_failed",
				extra={"user_id": profile.user_id, "error": type(result).__name__},
			)
			return dataclasses.replace(profile, reputation_tier=LOWEST_TIER, profile_completeness=0)
		if not isinstance(result, PrivateData):
			return dataclasses.replace(profile, reputation_tier=LOWEST_TIER, profile_completeness=0)
		return dataclasses.replace(
			profile,
			reputation_tier=result.reputation_tier,
			profile_completeness=result.profile_completeness,
		)
