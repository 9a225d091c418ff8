"""Named filter + sort presets per user."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Optional

from matchfeed.domain.discovery import schemas
from matchfeed.domain.discovery.models import SavedView
from matchfeed.domain.exceptions import NotFoundError
from matchfeed.store import Store, get_store

logger = logging.getLogger(__name__)


def _to_summary(view: SavedView) -> schemas.SavedViewSummary:
	return schemas.SavedViewSummary(
		id=view.id,
		name=view.name,
		filters=schemas.SearchFilters.model_validate(view.filters),
		sort=schemas.SearchSort.model_validate(view.sort),
		is_default=view.is_default,
		created_at=view.created_at,
		updated_at=view.updated_at,
	)


class SavedViewService:
	def __init__(self, store: Optional[Store] = None) -> None:
		self._store = store

	@property
	def store(self) -> Store:
		return self._store or get_store()

	async def save_view(self, user_id: str, payload: schemas.SavedViewCreate) -> schemas.SavedViewSummary:
		now = datetime.now(timezone.utc)
		view = SavedView(
			id=str(uuid.uuid4()),
			user_id=user_id,
			name=payload.name.strip(),
			filters=payload.filters.model_dump(mode="json", exclude_defaults=True),
			sort=payload.sort.model_dump(mode="json"),
			is_default=payload.is_default,
			created_at=now,
			updated_at=now,
		)
		await self.store.insert_saved_view(view)
		logger.info("saved_views.created", extra={"user_id": user_id, "view_id": view.id, "default": view.is_default})
		return _to_summary(view)

	async def list_views(self, user_id: str) -> list[schemas.SavedViewSummary]:
		views = await self.store.list_saved_views(user_id)
		return [_to_summary(view) for view in views]

	async def delete_view(self, user_id: str, view_id: str) -> None:
		if not await self.store.delete_saved_view(user_id, view_id):
			raise NotFoundError("view_not_found")
		logger.info("saved_views.deleted", extra={"user_id": user_id, "view_id": view_id})

	async def set_default_view(self, user_id: str, view_id: str) -> None:
		if not await self.store.set_default_view(user_id, view_id, now=datetime.now(timezone.utc)):
			raise NotFoundError("view_not_found")
