"""Onboarding completion and the backfill it triggers."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from matchfeed.domain.exceptions import NotFoundError
from matchfeed.domain.feed import events
from matchfeed.domain.feed.backfill import BackfillEngine
from matchfeed.settings import settings
from matchfeed.store import Store, get_store

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class OnboardingResult:
	user_id: str
	searchable: bool
	already_completed: bool = False


class ProfileService:
	def __init__(
		self,
		store: Optional[Store] = None,
		*,
		backfill: Optional[BackfillEngine] = None,
		inline_dispatch: Optional[bool] = None,
	) -> None:
		self._store = store
		self.backfill = backfill or BackfillEngine(store)
		self.inline_dispatch = (not settings.feed_workers_enabled) if inline_dispatch is None else inline_dispatch

	@property
	def store(self) -> Store:
		return self._store or get_store()

	async def complete_onboarding(self, user_id: str) -> OnboardingResult:
		current = await self.store.get_profile(user_id)
		if current is None:
			raise NotFoundError("profile_not_found")
		if current.onboarding_completed:
			return OnboardingResult(user_id=user_id, searchable=current.is_searchable, already_completed=True)
		profile = await self.store.mark_onboarding_completed(user_id)
		if profile is None:
			raise NotFoundError("profile_not_found")
		logger.info("profile.onboarding_completed", extra={"user_id": user_id, "searchable": profile.is_searchable})
		# Backfill is best effort and never fails onboarding.
		if self.inline_dispatch:
			await self.backfill.backfill_new_user(user_id)
		else:
			await events.publish_onboarding_completed(user_id=user_id)
		return OnboardingResult(user_id=user_id, searchable=profile.is_searchable)
