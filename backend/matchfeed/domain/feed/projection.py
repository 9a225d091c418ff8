"""Projection of a post into per-recipient feed items."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Iterable, Optional

from matchfeed.domain.feed.models import EXCERPT_LENGTH, FeedItem, FeedPreview, FeedReason, Post


def build_preview(post: Post) -> FeedPreview:
    text = post.content.text or ""
    return FeedPreview(
        author_name=post.author.display_name,
        author_photo_url=post.author.photo_url,
        content_excerpt=text[:EXCERPT_LENGTH],
        has_media=bool(post.content.media),
    )


def project_feed_item(
    post: Post,
    owner_id: str,
    reason: FeedReason,
    *,
    now: Optional[datetime] = None,
    preview: Optional[FeedPreview] = None,
) -> FeedItem:
    return FeedItem(
        owner_id=owner_id,
        post_id=post.id,
        author_id=post.author_id,
        reason=reason,
        visibility=post.visibility,
        created_at=post.created_at,
        inserted_at=now or datetime.now(timezone.utc),
        preview=preview or build_preview(post),
    )


def project_many(
    post: Post,
    recipients: Iterable[tuple[str, FeedReason]],
    *,
    now: Optional[datetime] = None,
) -> list[FeedItem]:
    """One item per recipient, all sharing a single preview snapshot."""

    now = now or datetime.now(timezone.utc)
    preview = build_preview(post)
    return [
        project_feed_item(post, owner_id, reason, now=now, preview=preview)
        for owner_id, reason in recipients
    ]
