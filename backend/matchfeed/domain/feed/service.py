"""Post lifecycle, private access and home feed reads."""

from __future__ import annotations

import base64
import json
import logging
import uuid
from datetime import datetime, timezone
from typing import Optional

from matchfeed.domain.blocks import BlockRegistry
from matchfeed.domain.exceptions import (
    BlockLookupError,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)
from matchfeed.domain.feed import events, schemas
from matchfeed.domain.feed.backfill import BackfillEngine
from matchfeed.domain.feed.fanout import FanoutEngine
from matchfeed.domain.feed.models import (
    AuthorSnapshot,
    Comment,
    ContentType,
    FeedCursor,
    FeedItem,
    Post,
    PostContent,
    PostMedia,
    PostStatus,
    PostVisibility,
)
from matchfeed.domain.profiles import LOWEST_TIER, Profile, ReputationTier
from matchfeed.obs import metrics as obs_metrics
from matchfeed.settings import settings
from matchfeed.store import Store, get_store

_LOG = logging.getLogger(__name__)

REPORT_FLAG_THRESHOLD = 3
_FEED_SCAN_ROUNDS = 5


def _encode_cursor(created_at: datetime, entity_id: str) -> str:
    payload = {"created_at": created_at.isoformat(), "id": entity_id}
    blob = json.dumps(payload, separators=(",", ":"))
    return base64.urlsafe_b64encode(blob.encode("utf-8")).decode("ascii")


def _decode_cursor(value: str) -> tuple[datetime, str]:
    try:
        decoded = base64.urlsafe_b64decode(value.encode("ascii")).decode("utf-8")
        data = json.loads(decoded)
        return datetime.fromisoformat(data["created_at"]), str(data["id"])
    except Exception as exc:
        raise ValidationError("bad_cursor") from exc


def _post_view(post: Post) -> schemas.PostView:
    return schemas.PostView(
        id=post.id,
        author_id=post.author_id,
        author_name=post.author.display_name,
        author_photo_url=post.author.photo_url,
        visibility=post.visibility,
        content_type=post.content.type,
        text=post.content.text,
        media=[
            schemas.MediaOut(
                url=item.url,
                type=item.type,
                thumb_url=item.thumb_url,
                width=item.width,
                height=item.height,
            )
            for item in post.content.media
        ],
        status=post.status,
        like_count=post.like_count,
        comment_count=post.comment_count,
        created_at=post.created_at,
        updated_at=post.updated_at,
    )


def _comment_view(comment: Comment, viewer_id: str) -> schemas.CommentView:
    return schemas.CommentView(
        id=comment.id,
        post_id=comment.post_id,
        author_id=comment.author_id,
        content=comment.content,
        created_at=comment.created_at,
        is_own=comment.author_id == viewer_id,
    )


def _feed_item_view(item: FeedItem) -> schemas.FeedItemView:
    return schemas.FeedItemView(
        post_id=item.post_id,
        author_id=item.author_id,
        reason=item.reason,
        visibility=item.visibility,
        created_at=item.created_at,
        inserted_at=item.inserted_at,
        preview=schemas.FeedPreviewView(
            author_name=item.preview.author_name,
            author_photo_url=item.preview.author_photo_url,
            content_excerpt=item.preview.content_excerpt,
            has_media=item.preview.has_media,
        ),
    )


class PostService:
    """Caller-facing post operations.

    Fanout and backfill run inline when the feed events worker is disabled,
    otherwise they are queued on the events stream.
    """

    def __init__(
        self,
        store: Optional[Store] = None,
        *,
        registry: Optional[BlockRegistry] = None,
        fanout: Optional[FanoutEngine] = None,
        backfill: Optional[BackfillEngine] = None,
        inline_dispatch: Optional[bool] = None,
    ) -> None:
        self._store = store
        self.registry = registry or BlockRegistry(store)
        self.fanout = fanout or FanoutEngine(store, registry=self.registry)
        self.backfill = backfill or BackfillEngine(store, registry=self.registry)
        self.inline_dispatch = (not settings.feed_workers_enabled) if inline_dispatch is None else inline_dispatch

    @property
    def store(self) -> Store:
        return self._store or get_store()

    async def _author_tier(self, user_id: str) -> ReputationTier:
        try:
            private = await self.store.get_private_data(user_id)
        except Exception:
            obs_metrics.REPUTATION_FALLBACKS.inc()
            _LOG.warning("posts.private_read_failed", extra={"user_id": user_id})
            return LOWEST_TIER
        return private.reputation_tier if private else LOWEST_TIER

    async def _snapshot(self, profile: Profile) -> AuthorSnapshot:
        return AuthorSnapshot(
            display_name=profile.display_name,
            photo_url=profile.photo_url or (profile.photos[0] if profile.photos else None),
            gender_identity=profile.gender_identity,
            support_orientation=profile.support_orientation,
            location=profile.location,
            reputation_tier=await self._author_tier(profile.user_id),
            identity_verified=profile.identity_verified,
        )

    async def _load_active_post(self, post_id: str) -> Post:
        post = await self.store.get_post(post_id)
        if post is None or not post.is_active:
            raise NotFoundError("post_not_found")
        return post

    async def create_post(self, user_id: str, payload: schemas.PostCreate) -> schemas.PostView:
        profile = await self.store.get_profile(user_id)
        if profile is None or not profile.onboarding_completed:
            raise ForbiddenError("onboarding_incomplete")
        text = (payload.content.text or "").strip() or None
        media = tuple(
            PostMedia(
                url=item.url,
                type=item.type.value,
                thumb_url=item.thumb_url,
                width=item.width,
                height=item.height,
            )
            for item in payload.content.media
        )
        if text is None and not media:
            raise ValidationError("empty_content")
        if payload.content.type != ContentType.TEXT and not media:
            raise ValidationError("media_required")

        now = datetime.now(timezone.utc)
        post = Post(
            id=str(uuid.uuid4()),
            author_id=user_id,
            visibility=payload.visibility,
            content=PostContent(type=payload.content.type, text=text, media=media),
            author=await self._snapshot(profile),
            created_at=now,
            updated_at=now,
        )
        await self.store.insert_post(post)
        await self.fanout.write_own_item(post, now=now)
        obs_metrics.inc_post_action("create")
        _LOG.info(
            "posts.created",
            extra={"post_id": post.id, "author_id": user_id, "visibility": post.visibility.value},
        )
        await self._dispatch_fanout(post)
        return _post_view(post)

    async def _dispatch_fanout(self, post: Post) -> None:
        if not self.inline_dispatch:
            await events.publish_post_created(post_id=post.id, author_id=post.author_id)
            return
        try:
            await self.fanout.fanout_post(post)
        except Exception:
            # Fanout failures never fail post creation.
            _LOG.exception("posts.fanout_failed", extra={"post_id": post.id, "author_id": post.author_id})

    async def get_post(self, user_id: str, post_id: str) -> schemas.PostView:
        post = await self._load_active_post(post_id)
        if post.author_id != user_id:
            await self.registry.ensure_not_blocked(user_id, post.author_id)
        return _post_view(post)

    async def delete_post(self, user_id: str, post_id: str) -> None:
        post = await self.store.get_post(post_id)
        if post is None:
            raise NotFoundError("post_not_found")
        if post.author_id != user_id:
            raise ForbiddenError("not_post_owner")
        if post.status == PostStatus.REMOVED:
            return
        await self.store.set_post_status(post_id, PostStatus.REMOVED, now=datetime.now(timezone.utc))
        obs_metrics.inc_post_action("delete")
        _LOG.info("posts.deleted", extra={"post_id": post_id, "author_id": user_id})

    async def report_post(self, user_id: str, post_id: str, payload: schemas.ReportCreate) -> schemas.ReportResponse:
        post = await self.store.get_post(post_id)
        if post is None or post.status == PostStatus.REMOVED:
            raise NotFoundError("post_not_found")
        if post.author_id == user_id:
            raise ValidationError("cannot_report_own_post")
        outcome = await self.store.add_report(
            post_id,
            user_id,
            reason=payload.reason.strip(),
            flag_threshold=REPORT_FLAG_THRESHOLD,
            now=datetime.now(timezone.utc),
        )
        if not outcome.created:
            return schemas.ReportResponse(reported=True, already_reported=True)
        obs_metrics.inc_post_action("report")
        if outcome.flagged:
            _LOG.warning("posts.flagged", extra={"post_id": post_id, "author_id": post.author_id})
        _LOG.info("posts.reported", extra={"post_id": post_id, "reporter_id": user_id})
        return schemas.ReportResponse(reported=True)

    async def like_post(self, user_id: str, post_id: str) -> schemas.LikeResponse:
        post = await self._load_active_post(post_id)
        if post.author_id != user_id:
            await self.registry.ensure_not_blocked(user_id, post.author_id)
        if await self.store.add_like(post_id, user_id):
            obs_metrics.inc_post_action("like")
        return schemas.LikeResponse(liked=True)

    async def unlike_post(self, user_id: str, post_id: str) -> schemas.LikeResponse:
        post = await self.store.get_post(post_id)
        if post is None:
            raise NotFoundError("post_not_found")
        if await self.store.remove_like(post_id, user_id):
            obs_metrics.inc_post_action("unlike")
        return schemas.LikeResponse(liked=False)

    async def add_comment(self, user_id: str, post_id: str, payload: schemas.CommentCreate) -> schemas.CommentView:
        content = payload.content.strip()
        if not content:
            raise ValidationError("empty_comment")
        post = await self._load_active_post(post_id)
        if post.author_id != user_id:
            await self.registry.ensure_not_blocked(user_id, post.author_id)
        comment = Comment(
            id=str(uuid.uuid4()),
            post_id=post_id,
            author_id=user_id,
            content=content,
            created_at=datetime.now(timezone.utc),
        )
        await self.store.insert_comment(comment)
        obs_metrics.inc_post_action("comment")
        _LOG.info("posts.commented", extra={"post_id": post_id, "comment_id": comment.id, "author_id": user_id})
        return _comment_view(comment, user_id)

    async def list_comments(
        self,
        user_id: str,
        post_id: str,
        *,
        limit: int = 20,
        cursor: Optional[str] = None,
    ) -> schemas.CommentPage:
        await self._load_active_post(post_id)
        page_size = max(1, min(limit, 50))
        after = _decode_cursor(cursor) if cursor else None
        comments = await self.store.list_comments(post_id, limit=page_size + 1, after=after)
        has_more = len(comments) > page_size
        comments = comments[:page_size]
        next_cursor = None
        if has_more and comments:
            next_cursor = _encode_cursor(comments[-1].created_at, comments[-1].id)
        return schemas.CommentPage(
            comments=[_comment_view(comment, user_id) for comment in comments],
            next_cursor=next_cursor,
            has_more=has_more,
        )

    async def delete_comment(self, user_id: str, post_id: str, comment_id: str) -> None:
        comment = await self.store.get_comment(post_id, comment_id)
        if comment is None:
            raise NotFoundError("comment_not_found")
        if comment.author_id != user_id:
            raise ForbiddenError("not_comment_owner")
        if await self.store.remove_comment(post_id, comment_id):
            obs_metrics.inc_post_action("delete_comment")

    async def grant_private_access(self, author_id: str, viewer_id: str) -> schemas.GrantResponse:
        if not viewer_id:
            raise ValidationError("viewer_required")
        if author_id == viewer_id:
            raise ValidationError("cannot_grant_self")
        if await self.store.get_profile(viewer_id) is None:
            raise NotFoundError("user_not_found")
        await self.registry.ensure_not_blocked(author_id, viewer_id)
        created = await self.store.add_private_access(author_id, viewer_id, now=datetime.now(timezone.utc))
        if not created:
            return schemas.GrantResponse(granted=True, already_granted=True)
        _LOG.info("private_access.granted", extra={"author_id": author_id, "viewer_id": viewer_id})
        if self.inline_dispatch:
            await self.backfill.backfill_private_access(author_id, viewer_id)
        else:
            await events.publish_access_granted(author_id=author_id, viewer_id=viewer_id)
        return schemas.GrantResponse(granted=True)

    async def revoke_private_access(self, author_id: str, viewer_id: str) -> None:
        if not viewer_id:
            raise ValidationError("viewer_required")
        # Items already written to the viewer's feed are hidden at read time.
        removed = await self.store.remove_private_access(author_id, viewer_id)
        _LOG.info(
            "private_access.revoked",
            extra={"author_id": author_id, "viewer_id": viewer_id, "existed": removed},
        )

    async def list_private_access(self, author_id: str) -> list[schemas.PrivateAccessEntry]:
        grants = await self.store.list_private_access(author_id)
        return [schemas.PrivateAccessEntry(viewer_id=grant.viewer_id, approved_at=grant.approved_at) for grant in grants]


class FeedQueryService:
    """Home feed reads.

    Feed items are never retracted when their post is removed, access is
    revoked or a block is created; such items are dropped here.
    """

    def __init__(self, store: Optional[Store] = None, *, registry: Optional[BlockRegistry] = None) -> None:
        self._store = store
        self.registry = registry or BlockRegistry(store)

    @property
    def store(self) -> Store:
        return self._store or get_store()

    async def get_feed(self, user_id: str, *, limit: int = 20, cursor: Optional[str] = None) -> schemas.FeedPage:
        page_size = max(1, min(limit, 50))
        position: Optional[FeedCursor] = None
        if cursor:
            created_at, post_id = _decode_cursor(cursor)
            position = FeedCursor(created_at=created_at, post_id=post_id)

        excluded: Optional[frozenset[str]]
        try:
            excluded = await self.registry.load_exclusion_set(user_id)
        except BlockLookupError:
            obs_metrics.BLOCK_LOOKUP_FAILURES.labels(path="feed_read").inc()
            _LOG.warning("feed.block_lookup_failed", extra={"user_id": user_id})
            excluded = None
        granted_authors = await self.store.list_private_access_authors(user_id)

        fetch_size = page_size * 2
        visible: list[FeedItem] = []
        exhausted = False
        for _ in range(_FEED_SCAN_ROUNDS):
            batch = await self.store.list_feed_items(user_id, limit=fetch_size, before=position)
            posts = await self.store.get_posts([item.post_id for item in batch]) if batch else {}
            for item in batch:
                position = FeedCursor(created_at=item.created_at, post_id=item.post_id)
                if self._is_visible(item, posts.get(item.post_id), user_id, excluded, granted_authors):
                    visible.append(item)
                    if len(visible) > page_size:
                        break
            if len(visible) > page_size:
                break
            if len(batch) < fetch_size:
                exhausted = True
                break

        if len(visible) > page_size:
            page = visible[:page_size]
            last = page[-1]
            return schemas.FeedPage(
                items=[_feed_item_view(item) for item in page],
                next_cursor=_encode_cursor(last.created_at, last.post_id),
                has_more=True,
            )
        next_cursor = None
        if not exhausted and position is not None:
            next_cursor = _encode_cursor(position.created_at, position.post_id)
        return schemas.FeedPage(
            items=[_feed_item_view(item) for item in visible],
            next_cursor=next_cursor,
            has_more=next_cursor is not None,
        )

    @staticmethod
    def _is_visible(
        item: FeedItem,
        post: Optional[Post],
        user_id: str,
        excluded: Optional[frozenset[str]],
        granted_authors: set[str],
    ) -> bool:
        if post is None or not post.is_active:
            return False
        if item.author_id == user_id:
            return True
        # A failed block lookup hides every other author.
        if excluded is None or item.author_id in excluded:
            return False
        if item.visibility == PostVisibility.PRIVATE and item.author_id not in granted_authors:
            return False
        return True
