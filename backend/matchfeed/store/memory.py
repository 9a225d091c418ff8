"""In-process store used by tests and local development."""

from __future__ import annotations

import asyncio
import dataclasses
from datetime import datetime
from typing import Iterable, Optional, Sequence

from matchfeed.domain.discovery.models import CandidateQuery, SavedView
from matchfeed.domain.feed import models as feed_models
from matchfeed.domain.profiles import PrivateData, Profile


def _pair(a: str, b: str) -> tuple[str, str]:
	return (a, b) if a < b else (b, a)


def _last_active_key(profile: Profile) -> tuple[int, float, str]:
	if profile.last_active_at is None:
		return (1, 0.0, profile.user_id)
	return (0, -profile.last_active_at.timestamp(), profile.user_id)


class MemoryStore:
	def __init__(self) -> None:
		self._lock = asyncio.Lock()
		self.profiles: dict[str, Profile] = {}
		self.private: dict[str, PrivateData] = {}
		self.blocks: dict[str, set[str]] = {}
		self.blocked_by: dict[str, set[str]] = {}
		self.matches: set[tuple[str, str]] = set()
		self.grants: dict[tuple[str, str], feed_models.PrivateAccessGrant] = {}
		self.posts: dict[str, feed_models.Post] = {}
		self.likes: set[tuple[str, str]] = set()
		self.comments: dict[str, feed_models.Comment] = {}
		self.reports: dict[tuple[str, str], str] = {}
		self.feed_items: dict[tuple[str, str], feed_models.FeedItem] = {}
		self.saved_views: dict[str, SavedView] = {}

	async def seed(
		self,
		*,
		profiles: Iterable[Profile] | None = None,
		private: dict[str, PrivateData] | None = None,
		blocks: Iterable[tuple[str, str]] | None = None,
		matches: Iterable[tuple[str, str]] | None = None,
	) -> None:
		async with self._lock:
			for profile in profiles or []:
				self.profiles[profile.user_id] = profile
			self.private.update(private or {})
			for blocker, blocked in blocks or []:
				self.blocks.setdefault(blocker, set()).add(blocked)
				self.blocked_by.setdefault(blocked, set()).add(blocker)
			for a, b in matches or []:
				self.matches.add(_pair(a, b))

	# Profiles ----------------------------------------------------------

	async def get_profile(self, user_id: str) -> Optional[Profile]:
		async with self._lock:
			return self.profiles.get(user_id)

	async def get_private_data(self, user_id: str) -> Optional[PrivateData]:
		async with self._lock:
			return self.private.get(user_id)

	async def mark_onboarding_completed(self, user_id: str) -> Optional[Profile]:
		async with self._lock:
			profile = self.profiles.get(user_id)
			if profile is None:
				return None
			updated = dataclasses.replace(profile, onboarding_completed=True)
			self.profiles[user_id] = updated
			return updated

	async def query_candidates(self, query: CandidateQuery) -> list[Profile]:
		genders = {g.lower() for g in query.gender_identities}
		lifestyles = {item.lower() for item in query.lifestyles}
		async with self._lock:
			matched: list[Profile] = []
			for profile in self.profiles.values():
				if profile.user_id == query.exclude_user_id:
					continue
				if not profile.onboarding_completed or not profile.is_searchable:
					continue
				if genders and (profile.gender_identity or "").lower() not in genders:
					continue
				if lifestyles and (profile.lifestyle or "").lower() not in lifestyles:
					continue
				if query.birth_date_min or query.birth_date_max:
					if profile.birth_date is None:
						continue
					if query.birth_date_min and profile.birth_date < query.birth_date_min:
						continue
					if query.birth_date_max and profile.birth_date > query.birth_date_max:
						continue
				matched.append(profile)
		matched.sort(key=_last_active_key)
		return matched[: query.limit]

	async def scan_searchable_profiles(self, *, after_user_id: Optional[str], limit: int) -> list[Profile]:
		async with self._lock:
			ids = sorted(
				user_id
				for user_id, profile in self.profiles.items()
				if profile.is_searchable and (after_user_id is None or user_id > after_user_id)
			)
			return [self.profiles[user_id] for user_id in ids[:limit]]

	# Blocks and matches ------------------------------------------------

	async def list_blocks(self, user_id: str) -> set[str]:
		async with self._lock:
			return set(self.blocks.get(user_id, ()))

	async def list_blocked_by(self, user_id: str) -> set[str]:
		async with self._lock:
			return set(self.blocked_by.get(user_id, ()))

	async def add_block(self, blocker_id: str, blocked_id: str) -> bool:
		async with self._lock:
			forward = self.blocks.setdefault(blocker_id, set())
			created = blocked_id not in forward
			forward.add(blocked_id)
			self.blocked_by.setdefault(blocked_id, set()).add(blocker_id)
			self.matches.discard(_pair(blocker_id, blocked_id))
			self.grants.pop((blocker_id, blocked_id), None)
			self.grants.pop((blocked_id, blocker_id), None)
			return created

	async def remove_block(self, blocker_id: str, blocked_id: str) -> bool:
		async with self._lock:
			forward = self.blocks.get(blocker_id, set())
			if blocked_id not in forward:
				return False
			forward.discard(blocked_id)
			self.blocked_by.get(blocked_id, set()).discard(blocker_id)
			return True

	async def add_match(self, user_a: str, user_b: str) -> None:
		async with self._lock:
			self.matches.add(_pair(user_a, user_b))

	async def list_match_partner_ids(self, user_id: str) -> list[str]:
		async with self._lock:
			partners = [b if a == user_id else a for a, b in self.matches if user_id in (a, b)]
		return sorted(partners)

	# Private access ----------------------------------------------------

	async def add_private_access(self, author_id: str, viewer_id: str, *, now: datetime) -> bool:
		async with self._lock:
			key = (author_id, viewer_id)
			if key in self.grants:
				return False
			self.grants[key] = feed_models.PrivateAccessGrant(author_id=author_id, viewer_id=viewer_id, approved_at=now)
			return True

	async def remove_private_access(self, author_id: str, viewer_id: str) -> bool:
		async with self._lock:
			return self.grants.pop((author_id, viewer_id), None) is not None

	async def list_private_access(self, author_id: str) -> list[feed_models.PrivateAccessGrant]:
		async with self._lock:
			grants = [grant for (author, _), grant in self.grants.items() if author == author_id]
		grants.sort(key=lambda grant: grant.approved_at, reverse=True)
		return grants

	async def list_private_access_authors(self, viewer_id: str) -> set[str]:
		async with self._lock:
			return {author for author, viewer in self.grants if viewer == viewer_id}

	# Posts -------------------------------------------------------------

	async def insert_post(self, post: feed_models.Post) -> None:
		async with self._lock:
			self.posts[post.id] = post

	async def get_post(self, post_id: str) -> Optional[feed_models.Post]:
		async with self._lock:
			return self.posts.get(post_id)

	async def get_posts(self, post_ids: Sequence[str]) -> dict[str, feed_models.Post]:
		async with self._lock:
			return {post_id: self.posts[post_id] for post_id in post_ids if post_id in self.posts}

	async def set_post_status(self, post_id: str, status: feed_models.PostStatus, *, now: datetime) -> bool:
		async with self._lock:
			post = self.posts.get(post_id)
			if post is None:
				return False
			post.status = status
			post.updated_at = now
			return True

	async def list_recent_public_posts(self, *, since: datetime, limit: int) -> list[feed_models.Post]:
		async with self._lock:
			posts = [
				post
				for post in self.posts.values()
				if post.visibility == feed_models.PostVisibility.PUBLIC
				and post.is_active
				and post.created_at >= since
			]
		posts.sort(key=lambda post: (post.created_at, post.id), reverse=True)
		return posts[:limit]

	async def list_recent_private_posts(self, author_id: str, *, limit: int) -> list[feed_models.Post]:
		async with self._lock:
			posts = [
				post
				for post in self.posts.values()
				if post.author_id == author_id
				and post.visibility == feed_models.PostVisibility.PRIVATE
				and post.is_active
			]
		posts.sort(key=lambda post: (post.created_at, post.id), reverse=True)
		return posts[:limit]

	async def add_like(self, post_id: str, user_id: str) -> bool:
		async with self._lock:
			key = (post_id, user_id)
			post = self.posts.get(post_id)
			if key in self.likes or post is None:
				return False
			self.likes.add(key)
			post.like_count += 1
			return True

	async def remove_like(self, post_id: str, user_id: str) -> bool:
		async with self._lock:
			key = (post_id, user_id)
			post = self.posts.get(post_id)
			if key not in self.likes or post is None:
				return False
			self.likes.discard(key)
			post.like_count = max(0, post.like_count - 1)
			return True

	async def insert_comment(self, comment: feed_models.Comment) -> None:
		async with self._lock:
			self.comments[comment.id] = comment
			post = self.posts.get(comment.post_id)
			if post is not None:
				post.comment_count += 1

	async def get_comment(self, post_id: str, comment_id: str) -> Optional[feed_models.Comment]:
		async with self._lock:
			comment = self.comments.get(comment_id)
			if comment is None or comment.post_id != post_id:
				return None
			return comment

	async def list_comments(
		self,
		post_id: str,
		*,
		limit: int,
		after: Optional[tuple[datetime, str]] = None,
	) -> list[feed_models.Comment]:
		async with self._lock:
			comments = [
				comment
				for comment in self.comments.values()
				if comment.post_id == post_id and comment.status == feed_models.CommentStatus.ACTIVE
			]
		comments.sort(key=lambda comment: (comment.created_at, comment.id))
		if after is not None:
			comments = [comment for comment in comments if (comment.created_at, comment.id) > after]
		return comments[:limit]

	async def remove_comment(self, post_id: str, comment_id: str) -> bool:
		async with self._lock:
			comment = self.comments.get(comment_id)
			if comment is None or comment.post_id != post_id or comment.status == feed_models.CommentStatus.REMOVED:
				return False
			comment.status = feed_models.CommentStatus.REMOVED
			post = self.posts.get(post_id)
			if post is not None:
				post.comment_count = max(0, post.comment_count - 1)
			return True

	async def add_report(
		self,
		post_id: str,
		reporter_id: str,
		*,
		reason: str,
		flag_threshold: int,
		now: datetime,
	) -> feed_models.ReportOutcome:
		async with self._lock:
			post = self.posts.get(post_id)
			key = (post_id, reporter_id)
			if post is None or key in self.reports:
				return feed_models.ReportOutcome(created=False)
			self.reports[key] = reason
			post.report_count += 1
			flagged = False
			if post.report_count >= flag_threshold and post.status == feed_models.PostStatus.ACTIVE:
				post.status = feed_models.PostStatus.FLAGGED
				post.updated_at = now
				flagged = True
			return feed_models.ReportOutcome(created=True, flagged=flagged)

	# Feed items --------------------------------------------------------

	async def upsert_feed_items(self, items: Sequence[feed_models.FeedItem]) -> None:
		async with self._lock:
			for item in items:
				self.feed_items[(item.owner_id, item.post_id)] = item

	async def list_feed_items(
		self,
		owner_id: str,
		*,
		limit: int,
		before: Optional[feed_models.FeedCursor] = None,
	) -> list[feed_models.FeedItem]:
		async with self._lock:
			items = [item for (owner, _), item in self.feed_items.items() if owner == owner_id]
		items.sort(key=lambda item: (item.created_at, item.post_id), reverse=True)
		if before is not None:
			items = [item for item in items if (item.created_at, item.post_id) < (before.created_at, before.post_id)]
		return items[:limit]

	# Saved views -------------------------------------------------------

	async def insert_saved_view(self, view: SavedView) -> None:
		async with self._lock:
			if view.is_default:
				for existing in self.saved_views.values():
					if existing.user_id == view.user_id:
						existing.is_default = False
			self.saved_views[view.id] = view

	async def list_saved_views(self, user_id: str) -> list[SavedView]:
		async with self._lock:
			views = [view for view in self.saved_views.values() if view.user_id == user_id]
		views.sort(key=lambda view: (view.created_at, view.id), reverse=True)
		return views

	async def delete_saved_view(self, user_id: str, view_id: str) -> bool:
		async with self._lock:
			view = self.saved_views.get(view_id)
			if view is None or view.user_id != user_id:
				return False
			del self.saved_views[view_id]
			return True

	async def set_default_view(self, user_id: str, view_id: str, *, now: datetime) -> bool:
		async with self._lock:
			target = self.saved_views.get(view_id)
			if target is None or target.user_id != user_id:
				return False
			for view in self.saved_views.values():
				if view.user_id == user_id and view.is_default and view.id != view_id:
					view.is_default = False
					view.updated_at = now
			target.is_default = True
			target.updated_at = now
			return True
