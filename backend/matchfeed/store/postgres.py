"""asyncpg-backed store for profiles, blocks, posts and feed items."""

from __future__ import annotations

import json
from datetime import datetime
from typing import Any, Mapping, Optional, Sequence

from matchfeed.domain.discovery.models import CandidateQuery, SavedView
from matchfeed.domain.feed import models as feed_models
from matchfeed.domain.profiles import Coordinates, PrivateData, Profile, ReputationTier
from matchfeed.infra.postgres import get_pool


def _pair(a: str, b: str) -> tuple[str, str]:
	return (a, b) if a < b else (b, a)


def _json_value(value: Any, default: Any) -> Any:
	if value is None:
		return default
	if isinstance(value, str):
		return json.loads(value)
	return value


def _coordinates(latitude: Optional[float], longitude: Optional[float]) -> Optional[Coordinates]:
	if latitude is None or longitude is None:
		return None
	return Coordinates(latitude=float(latitude), longitude=float(longitude))


def _profile_from_row(row: Mapping[str, Any]) -> Profile:
	return Profile(
		user_id=row["user_id"],
		display_name=row["display_name"] or "",
		gender_identity=row["gender_identity"],
		support_orientation=row["support_orientation"],
		interested_in=frozenset(row["interested_in"] or ()),
		location=_coordinates(row["latitude"], row["longitude"]),
		birth_date=row["birth_date"],
		identity_verified=bool(row["identity_verified"]),
		lifestyle=row["lifestyle"],
		connection_types=tuple(row["connection_types"] or ()),
		values=tuple(row["profile_values"] or ()),
		ethnicity=row["ethnicity"],
		relationship_status=row["relationship_status"],
		children=row["children"],
		smoker=row["smoker"],
		drinker=row["drinker"],
		education=row["education"],
		occupation=row["occupation"],
		city=row["city"],
		country=row["country"],
		tagline=row["tagline"] or "",
		photo_url=row["photo_url"],
		photos=tuple(row["photos"] or ()),
		show_online_status=bool(row["show_online_status"]),
		show_last_active=bool(row["show_last_active"]),
		show_location=bool(row["show_location"]),
		last_active_at=row["last_active_at"],
		created_at=row["created_at"],
		onboarding_completed=bool(row["onboarding_completed"]),
		is_visible=bool(row["is_visible"]),
		is_disabled=bool(row["is_disabled"]),
		pending_deletion=bool(row["pending_deletion"]),
	)


def _snapshot_to_json(snapshot: feed_models.AuthorSnapshot) -> str:
	location = snapshot.location
	return json.dumps(
		{
			"display_name": snapshot.display_name,
			"photo_url": snapshot.photo_url,
			"gender_identity": snapshot.gender_identity,
			"support_orientation": snapshot.support_orientation,
			"latitude": location.latitude if location else None,
			"longitude": location.longitude if location else None,
			"reputation_tier": snapshot.reputation_tier.value,
			"identity_verified": snapshot.identity_verified,
		}
	)


def _snapshot_from_json(raw: Any) -> feed_models.AuthorSnapshot:
	data = _json_value(raw, {})
	return feed_models.AuthorSnapshot(
		display_name=data.get("display_name") or "",
		photo_url=data.get("photo_url"),
		gender_identity=data.get("gender_identity"),
		support_orientation=data.get("support_orientation"),
		location=_coordinates(data.get("latitude"), data.get("longitude")),
		reputation_tier=ReputationTier.parse(data.get("reputation_tier")),
		identity_verified=bool(data.get("identity_verified")),
	)


def _post_from_row(row: Mapping[str, Any]) -> feed_models.Post:
	media = tuple(
		feed_models.PostMedia(
			url=item["url"],
			type=item.get("type") or feed_models.ContentType.IMAGE.value,
			thumb_url=item.get("thumb_url"),
			width=item.get("width"),
			height=item.get("height"),
		)
		for item in _json_value(row["media"], [])
	)
	return feed_models.Post(
		id=row["id"],
		author_id=row["author_id"],
		visibility=feed_models.PostVisibility(row["visibility"]),
		content=feed_models.PostContent(
			type=feed_models.ContentType(row["content_type"]),
			text=row["content_text"],
			media=media,
		),
		author=_snapshot_from_json(row["author_snapshot"]),
		created_at=row["created_at"],
		updated_at=row["updated_at"],
		status=feed_models.PostStatus(row["status"]),
		like_count=int(row["like_count"]),
		comment_count=int(row["comment_count"]),
		report_count=int(row["report_count"]),
	)


def _feed_item_from_row(row: Mapping[str, Any]) -> feed_models.FeedItem:
	return feed_models.FeedItem(
		owner_id=row["owner_id"],
		post_id=row["post_id"],
		author_id=row["author_id"],
		reason=feed_models.FeedReason(row["reason"]),
		visibility=feed_models.PostVisibility(row["visibility"]),
		created_at=row["created_at"],
		inserted_at=row["inserted_at"],
		preview=feed_models.FeedPreview(
			author_name=row["author_name"],
			author_photo_url=row["author_photo_url"],
			content_excerpt=row["content_excerpt"],
			has_media=bool(row["has_media"]),
		),
	)


def _comment_from_row(row: Mapping[str, Any]) -> feed_models.Comment:
	return feed_models.Comment(
		id=row["id"],
		post_id=row["post_id"],
		author_id=row["author_id"],
		content=row["content"],
		created_at=row["created_at"],
		status=feed_models.CommentStatus(row["status"]),
	)


def _saved_view_from_row(row: Mapping[str, Any]) -> SavedView:
	return SavedView(
		id=row["id"],
		user_id=row["user_id"],
		name=row["name"],
		filters=_json_value(row["filters"], {}),
		sort=_json_value(row["sort"], {}),
		is_default=bool(row["is_default"]),
		created_at=row["created_at"],
		updated_at=row["updated_at"],
	)


_POST_COLUMNS = """
	id, author_id, visibility, content_type, content_text, media, author_snapshot,
	status, like_count, comment_count, report_count, created_at, updated_at
"""


class PostgresStore:
	# Profiles ----------------------------------------------------------

	async def get_profile(self, user_id: str) -> Optional[Profile]:
		pool = await get_pool()
		async with pool.acquire() as conn:
			row = await conn.fetchrow("SELECT * FROM profiles WHERE user_id=$1", user_id)
		return _profile_from_row(row) if row else None

	async def get_private_data(self, user_id: str) -> Optional[PrivateData]:
		pool = await get_pool()
		async with pool.acquire() as conn:
			row = await conn.fetchrow(
				"SELECT reputation_tier, profile_completeness FROM profile_private WHERE user_id=$1",
				user_id,
			)
		if row is None:
			return None
		return PrivateData(
			reputation_tier=ReputationTier.parse(row["reputation_tier"]),
			profile_completeness=int(row["profile_completeness"] or 0),
		)

	async def mark_onboarding_completed(self, user_id: str) -> Optional[Profile]:
		pool = await get_pool()
		async with pool.acquire() as conn:
			row = await conn.fetchrow(
				"""
				UPDATE profiles SET onboarding_completed = TRUE
				WHERE user_id=$1
				RETURNING *
				""",
				user_id,
			)
		return _profile_from_row(row) if row else None

	async def query_candidates(self, query: CandidateQuery) -> list[Profile]:
		clauses = ["onboarding_completed = TRUE", "is_searchable = TRUE"]
		params: list[object] = []
		if query.exclude_user_id:
			params.append(query.exclude_user_id)
			clauses.append(f"user_id <> ${len(params)}")
		if query.gender_identities:
			params.append([value.lower() for value in query.gender_identities])
			clauses.append(f"LOWER(gender_identity) = ANY(${len(params)}::text[])")
		if query.lifestyles:
			params.append([value.lower() for value in query.lifestyles])
			clauses.append(f"LOWER(lifestyle) = ANY(${len(params)}::text[])")
		if query.birth_date_min:
			params.append(query.birth_date_min)
			clauses.append(f"birth_date >= ${len(params)}")
		if query.birth_date_max:
			params.append(query.birth_date_max)
			clauses.append(f"birth_date <= ${len(params)}")
		params.append(int(query.limit))
		sql = f"""
			SELECT *
			FROM profiles
			WHERE {" AND ".join(clauses)}
			ORDER BY last_active_at DESC NULLS LAST, user_id ASC
			LIMIT ${len(params)}
		"""
		pool = await get_pool()
		async with pool.acquire() as conn:
			rows = await conn.fetch(sql, *params)
		return [_profile_from_row(row) for row in rows]

	async def scan_searchable_profiles(self, *, after_user_id: Optional[str], limit: int) -> list[Profile]:
		pool = await get_pool()
		async with pool.acquire() as conn:
			rows = await conn.fetch(
				"""
				SELECT *
				FROM profiles
				WHERE is_searchable = TRUE AND ($1::text IS NULL OR user_id > $1)
				ORDER BY user_id ASC
				LIMIT $2
				""",
				after_user_id,
				int(limit),
			)
		return [_profile_from_row(row) for row in rows]

	# Blocks and matches ------------------------------------------------

	async def list_blocks(self, user_id: str) -> set[str]:
		pool = await get_pool()
		async with pool.acquire() as conn:
			rows = await conn.fetch("SELECT blocked_id FROM user_blocks WHERE blocker_id=$1", user_id)
		return {row["blocked_id"] for row in rows}

	async def list_blocked_by(self, user_id: str) -> set[str]:
		pool = await get_pool()
		async with pool.acquire() as conn:
			rows = await conn.fetch("SELECT blocker_id FROM user_blocked_by WHERE user_id=$1", user_id)
		return {row["blocker_id"] for row in rows}

	async def add_block(self, blocker_id: str, blocked_id: str) -> bool:
		user_a, user_b = _pair(blocker_id, blocked_id)
		pool = await get_pool()
		async with pool.acquire() as conn:
			async with conn.transaction():
				result = await conn.execute(
					"""
					INSERT INTO user_blocks (blocker_id, blocked_id)
					VALUES ($1, $2)
					ON CONFLICT (blocker_id, blocked_id) DO NOTHING
					""",
					blocker_id,
					blocked_id,
				)
				await conn.execute(
					"""
					INSERT INTO user_blocked_by (user_id, blocker_id)
					VALUES ($1, $2)
					ON CONFLICT (user_id, blocker_id) DO NOTHING
					""",
					blocked_id,
					blocker_id,
				)
				await conn.execute("DELETE FROM matches WHERE user_a=$1 AND user_b=$2", user_a, user_b)
				await conn.execute(
					"""
					DELETE FROM private_access_grants
					WHERE (author_id=$1 AND viewer_id=$2) OR (author_id=$2 AND viewer_id=$1)
					""",
					blocker_id,
					blocked_id,
				)
		return result.endswith(" 1")

	async def remove_block(self, blocker_id: str, blocked_id: str) -> bool:
		pool = await get_pool()
		async with pool.acquire() as conn:
			async with conn.transaction():
				result = await conn.execute(
					"DELETE FROM user_blocks WHERE blocker_id=$1 AND blocked_id=$2",
					blocker_id,
					blocked_id,
				)
				await conn.execute(
					"DELETE FROM user_blocked_by WHERE user_id=$1 AND blocker_id=$2",
					blocked_id,
					blocker_id,
				)
		return int(result.split()[-1]) > 0

	async def add_match(self, user_a: str, user_b: str) -> None:
		first, second = _pair(user_a, user_b)
		pool = await get_pool()
		async with pool.acquire() as conn:
			await conn.execute(
				"""
				INSERT INTO matches (user_a, user_b) VALUES ($1, $2)
				ON CONFLICT (user_a, user_b) DO NOTHING
				""",
				first,
				second,
			)

	async def list_match_partner_ids(self, user_id: str) -> list[str]:
		pool = await get_pool()
		async with pool.acquire() as conn:
			rows = await conn.fetch(
				"""
				SELECT CASE WHEN user_a=$1 THEN user_b ELSE user_a END AS partner_id
				FROM matches
				WHERE user_a=$1 OR user_b=$1
				ORDER BY partner_id
				""",
				user_id,
			)
		return [row["partner_id"] for row in rows]

	# Private access ----------------------------------------------------

	async def add_private_access(self, author_id: str, viewer_id: str, *, now: datetime) -> bool:
		pool = await get_pool()
		async with pool.acquire() as conn:
			result = await conn.execute(
				"""
				INSERT INTO private_access_grants (author_id, viewer_id, approved_at)
				VALUES ($1, $2, $3)
				ON CONFLICT (author_id, viewer_id) DO NOTHING
				""",
				author_id,
				viewer_id,
				now,
			)
		return result.endswith(" 1")

	async def remove_private_access(self, author_id: str, viewer_id: str) -> bool:
		pool = await get_pool()
		async with pool.acquire() as conn:
			result = await conn.execute(
				"DELETE FROM private_access_grants WHERE author_id=$1 AND viewer_id=$2",
				author_id,
				viewer_id,
			)
		return int(result.split()[-1]) > 0

	async def list_private_access(self, author_id: str) -> list[feed_models.PrivateAccessGrant]:
		pool = await get_pool()
		async with pool.acquire() as conn:
			rows = await conn.fetch(
				"""
				SELECT author_id, viewer_id, approved_at, granted_by
				FROM private_access_grants
				WHERE author_id=$1
				ORDER BY approved_at DESC
				""",
				author_id,
			)
		return [
			feed_models.PrivateAccessGrant(
				author_id=row["author_id"],
				viewer_id=row["viewer_id"],
				approved_at=row["approved_at"],
				granted_by=row["granted_by"],
			)
			for row in rows
		]

	async def list_private_access_authors(self, viewer_id: str) -> set[str]:
		pool = await get_pool()
		async with pool.acquire() as conn:
			rows = await conn.fetch("SELECT author_id FROM private_access_grants WHERE viewer_id=$1", viewer_id)
		return {row["author_id"] for row in rows}

	# Posts -------------------------------------------------------------

	async def insert_post(self, post: feed_models.Post) -> None:
		media = [
			{
				"url": item.url,
				"type": item.type,
				"thumb_url": item.thumb_url,
				"width": item.width,
				"height": item.height,
			}
			for item in post.content.media
		]
		pool = await get_pool()
		async with pool.acquire() as conn:
			await conn.execute(
				"""
				INSERT INTO posts (
					id, author_id, visibility, content_type, content_text, media, author_snapshot,
					status, like_count, comment_count, report_count, created_at, updated_at
				)
				VALUES ($1, $2, $3, $4, $5, $6::jsonb, $7::jsonb, $8, $9, $10, $11, $12, $13)
				""",
				post.id,
				post.author_id,
				post.visibility.value,
				post.content.type.value,
				post.content.text,
				json.dumps(media),
				_snapshot_to_json(post.author),
				post.status.value,
				post.like_count,
				post.comment_count,
				post.report_count,
				post.created_at,
				post.updated_at,
			)

	async def get_post(self, post_id: str) -> Optional[feed_models.Post]:
		pool = await get_pool()
		async with pool.acquire() as conn:
			row = await conn.fetchrow(f"SELECT {_POST_COLUMNS} FROM posts WHERE id=$1", post_id)
		return _post_from_row(row) if row else None

	async def get_posts(self, post_ids: Sequence[str]) -> dict[str, feed_models.Post]:
		if not post_ids:
			return {}
		pool = await get_pool()
		async with pool.acquire() as conn:
			rows = await conn.fetch(
				f"SELECT {_POST_COLUMNS} FROM posts WHERE id = ANY($1::text[])",
				list(post_ids),
			)
		return {row["id"]: _post_from_row(row) for row in rows}

	async def set_post_status(self, post_id: str, status: feed_models.PostStatus, *, now: datetime) -> bool:
		pool = await get_pool()
		async with pool.acquire() as conn:
			result = await conn.execute(
				"UPDATE posts SET status=$2, updated_at=$3 WHERE id=$1",
				post_id,
				status.value,
				now,
			)
		return int(result.split()[-1]) > 0

	async def list_recent_public_posts(self, *, since: datetime, limit: int) -> list[feed_models.Post]:
		pool = await get_pool()
		async with pool.acquire() as conn:
			rows = await conn.fetch(
				f"""
				SELECT {_POST_COLUMNS}
				FROM posts
				WHERE visibility='public' AND status='active' AND created_at >= $1
				ORDER BY created_at DESC, id DESC
				LIMIT $2
				""",
				since,
				int(limit),
			)
		return [_post_from_row(row) for row in rows]

	async def list_recent_private_posts(self, author_id: str, *, limit: int) -> list[feed_models.Post]:
		pool = await get_pool()
		async with pool.acquire() as conn:
			rows = await conn.fetch(
				f"""
				SELECT {_POST_COLUMNS}
				FROM posts
				WHERE author_id=$1 AND visibility='private' AND status='active'
				ORDER BY created_at DESC, id DESC
				LIMIT $2
				""",
				author_id,
				int(limit),
			)
		return [_post_from_row(row) for row in rows]

	async def add_like(self, post_id: str, user_id: str) -> bool:
		pool = await get_pool()
		async with pool.acquire() as conn:
			async with conn.transaction():
				result = await conn.execute(
					"""
					INSERT INTO post_likes (post_id, user_id) VALUES ($1, $2)
					ON CONFLICT (post_id, user_id) DO NOTHING
					""",
					post_id,
					user_id,
				)
				if not result.endswith(" 1"):
					return False
				await conn.execute("UPDATE posts SET like_count = like_count + 1 WHERE id=$1", post_id)
		return True

	async def remove_like(self, post_id: str, user_id: str) -> bool:
		pool = await get_pool()
		async with pool.acquire() as conn:
			async with conn.transaction():
				result = await conn.execute(
					"DELETE FROM post_likes WHERE post_id=$1 AND user_id=$2",
					post_id,
					user_id,
				)
				if int(result.split()[-1]) == 0:
					return False
				await conn.execute(
					"UPDATE posts SET like_count = GREATEST(like_count - 1, 0) WHERE id=$1",
					post_id,
				)
		return True

	async def insert_comment(self, comment: feed_models.Comment) -> None:
		pool = await get_pool()
		async with pool.acquire() as conn:
			async with conn.transaction():
				await conn.execute(
					"""
					INSERT INTO post_comments (id, post_id, author_id, content, status, created_at)
					VALUES ($1, $2, $3, $4, $5, $6)
					""",
					comment.id,
					comment.post_id,
					comment.author_id,
					comment.content,
					comment.status.value,
					comment.created_at,
				)
				await conn.execute(
					"UPDATE posts SET comment_count = comment_count + 1 WHERE id=$1",
					comment.post_id,
				)

	async def get_comment(self, post_id: str, comment_id: str) -> Optional[feed_models.Comment]:
		pool = await get_pool()
		async with pool.acquire() as conn:
			row = await conn.fetchrow(
				"SELECT * FROM post_comments WHERE id=$1 AND post_id=$2",
				comment_id,
				post_id,
			)
		return _comment_from_row(row) if row else None

	async def list_comments(
		self,
		post_id: str,
		*,
		limit: int,
		after: Optional[tuple[datetime, str]] = None,
	) -> list[feed_models.Comment]:
		params: list[object] = [post_id]
		where_clauses = ["post_id=$1", "status='active'"]
		if after is not None:
			params.extend(after)
			where_clauses.append("(created_at, id) > ($2, $3)")
		params.append(int(limit))
		pool = await get_pool()
		async with pool.acquire() as conn:
			rows = await conn.fetch(
				f"""
				SELECT *
				FROM post_comments
				WHERE {" AND ".join(where_clauses)}
				ORDER BY created_at ASC, id ASC
				LIMIT ${len(params)}
				""",
				*params,
			)
		return [_comment_from_row(row) for row in rows]

	async def remove_comment(self, post_id: str, comment_id: str) -> bool:
		pool = await get_pool()
		async with pool.acquire() as conn:
			async with conn.transaction():
				result = await conn.execute(
					"""
					UPDATE post_comments SET status='removed'
					WHERE id=$1 AND post_id=$2 AND status <> 'removed'
					""",
					comment_id,
					post_id,
				)
				if int(result.split()[-1]) == 0:
					return False
				await conn.execute(
					"UPDATE posts SET comment_count = GREATEST(comment_count - 1, 0) WHERE id=$1",
					post_id,
				)
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
		pool = await get_pool()
		async with pool.acquire() as conn:
			async with conn.transaction():
				result = await conn.execute(
					"""
					INSERT INTO post_reports (post_id, reporter_id, reason, created_at)
					VALUES ($1, $2, $3, $4)
					ON CONFLICT (post_id, reporter_id) DO NOTHING
					""",
					post_id,
					reporter_id,
					reason,
					now,
				)
				if not result.endswith(" 1"):
					return feed_models.ReportOutcome(created=False)
				row = await conn.fetchrow(
					"""
					UPDATE posts SET report_count = report_count + 1
					WHERE id=$1
					RETURNING report_count, status
					""",
					post_id,
				)
				flagged = False
				if row and row["report_count"] >= flag_threshold and row["status"] == "active":
					await conn.execute(
						"UPDATE posts SET status='flagged', updated_at=$2 WHERE id=$1",
						post_id,
						now,
					)
					flagged = True
		return feed_models.ReportOutcome(created=True, flagged=flagged)

	# Feed items --------------------------------------------------------

	async def upsert_feed_items(self, items: Sequence[feed_models.FeedItem]) -> None:
		if not items:
			return
		payload = [
			(
				item.owner_id,
				item.post_id,
				item.author_id,
				item.reason.value,
				item.visibility.value,
				item.preview.author_name,
				item.preview.author_photo_url,
				item.preview.content_excerpt,
				item.preview.has_media,
				item.created_at,
				item.inserted_at,
			)
			for item in items
		]
		pool = await get_pool()
		async with pool.acquire() as conn:
			async with conn.transaction():
				await conn.executemany(
					"""
					INSERT INTO feed_items (
						owner_id, post_id, author_id, reason, visibility, author_name,
						author_photo_url, content_excerpt, has_media, created_at, inserted_at
					)
					VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11)
					ON CONFLICT (owner_id, post_id)
					DO UPDATE SET reason = EXCLUDED.reason,
						visibility = EXCLUDED.visibility,
						author_name = EXCLUDED.author_name,
						author_photo_url = EXCLUDED.author_photo_url,
						content_excerpt = EXCLUDED.content_excerpt,
						has_media = EXCLUDED.has_media,
						inserted_at = EXCLUDED.inserted_at
					""",
					payload,
				)

	async def list_feed_items(
		self,
		owner_id: str,
		*,
		limit: int,
		before: Optional[feed_models.FeedCursor] = None,
	) -> list[feed_models.FeedItem]:
		params: list[object] = [owner_id]
		where_clauses = ["owner_id=$1"]
		if before is not None:
			params.extend([before.created_at, before.post_id])
			where_clauses.append("(created_at, post_id) < ($2, $3)")
		params.append(int(limit))
		pool = await get_pool()
		async with pool.acquire() as conn:
			rows = await conn.fetch(
				f"""
				SELECT *
				FROM feed_items
				WHERE {" AND ".join(where_clauses)}
				ORDER BY created_at DESC, post_id DESC
				LIMIT ${len(params)}
				""",
				*params,
			)
		return [_feed_item_from_row(row) for row in rows]

	# Saved views -------------------------------------------------------

	async def insert_saved_view(self, view: SavedView) -> None:
		pool = await get_pool()
		async with pool.acquire() as conn:
			async with conn.transaction():
				if view.is_default:
					await conn.execute(
						"UPDATE saved_views SET is_default=FALSE, updated_at=$2 WHERE user_id=$1 AND is_default",
						view.user_id,
						view.created_at,
					)
				await conn.execute(
					"""
					INSERT INTO saved_views (id, user_id, name, filters, sort, is_default, created_at, updated_at)
					VALUES ($1, $2, $3, $4::jsonb, $5::jsonb, $6, $7, $8)
					""",
					view.id,
					view.user_id,
					view.name,
					json.dumps(view.filters),
					json.dumps(view.sort),
					view.is_default,
					view.created_at,
					view.updated_at,
				)

	async def list_saved_views(self, user_id: str) -> list[SavedView]:
		pool = await get_pool()
		async with pool.acquire() as conn:
			rows = await conn.fetch(
				"SELECT * FROM saved_views WHERE user_id=$1 ORDER BY created_at DESC, id DESC",
				user_id,
			)
		return [_saved_view_from_row(row) for row in rows]

	async def delete_saved_view(self, user_id: str, view_id: str) -> bool:
		pool = await get_pool()
		async with pool.acquire() as conn:
			result = await conn.execute(
				"DELETE FROM saved_views WHERE id=$1 AND user_id=$2",
				view_id,
				user_id,
			)
		return int(result.split()[-1]) > 0

	async def set_default_view(self, user_id: str, view_id: str, *, now: datetime) -> bool:
		pool = await get_pool()
		async with pool.acquire() as conn:
			async with conn.transaction():
				exists = await conn.fetchval(
					"SELECT 1 FROM saved_views WHERE id=$1 AND user_id=$2",
					view_id,
					user_id,
				)
				if not exists:
					return False
				await conn.execute(
					"""
					UPDATE saved_views SET is_default = (id = $2), updated_at=$3
					WHERE user_id=$1 AND (is_default OR id = $2)
					""",
					user_id,
					view_id,
					now,
				)
		return True
