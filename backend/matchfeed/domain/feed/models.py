"""Domain models for posts and denormalized feed items."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

from matchfeed.domain.profiles import LOWEST_TIER, Coordinates, ReputationTier

EXCERPT_LENGTH = 100


class PostVisibility(str, Enum):
    PUBLIC = "public"
    CONNECTIONS = "connections"
    PRIVATE = "private"


class PostStatus(str, Enum):
    ACTIVE = "active"
    FLAGGED = "flagged"
    REMOVED = "removed"


class ContentType(str, Enum):
    TEXT = "text"
    IMAGE = "image"
    VIDEO = "video"


class FeedReason(str, Enum):
    """Why an item landed in a recipient's feed."""

    CONNECTION = "connection"
    APPROVED = "approved"
    PUBLIC = "public"
    OWN = "own"
    SYSTEM_BOOST = "systemBoost"


class CommentStatus(str, Enum):
    ACTIVE = "active"
    REMOVED = "removed"


@dataclass(slots=True, frozen=True)
class PostMedia:
    url: str
    type: str = ContentType.IMAGE.value
    thumb_url: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None


@dataclass(slots=True, frozen=True)
class PostContent:
    type: ContentType
    text: Optional[str] = None
    media: tuple[PostMedia, ...] = ()


@dataclass(slots=True, frozen=True)
class AuthorSnapshot:
    """Author attributes captured when the post is created.

    Fanout reads these instead of re-reading the author's profile.
    """

    display_name: str = ""
    photo_url: Optional[str] = None
    gender_identity: Optional[str] = None
    support_orientation: Optional[str] = None
    location: Optional[Coordinates] = None
    reputation_tier: ReputationTier = LOWEST_TIER
    identity_verified: bool = False


@dataclass(slots=True)
class Post:
    id: str
    author_id: str
    visibility: PostVisibility
    content: PostContent
    author: AuthorSnapshot
    created_at: datetime
    updated_at: datetime
    status: PostStatus = PostStatus.ACTIVE
    like_count: int = 0
    comment_count: int = 0
    report_count: int = 0

    @property
    def is_active(self) -> bool:
        return self.status == PostStatus.ACTIVE


@dataclass(slots=True, frozen=True)
class FeedPreview:
    author_name: str
    content_excerpt: str
    has_media: bool
    author_photo_url: Optional[str] = None


@dataclass(slots=True)
class FeedItem:
    """Per-recipient pointer to a post. ``post_id`` doubles as the item id."""

    owner_id: str
    post_id: str
    author_id: str
    reason: FeedReason
    visibility: PostVisibility
    created_at: datetime
    inserted_at: datetime
    preview: FeedPreview


@dataclass(slots=True)
class Comment:
    id: str
    post_id: str
    author_id: str
    content: str
    created_at: datetime
    status: CommentStatus = CommentStatus.ACTIVE


@dataclass(slots=True)
class PrivateAccessGrant:
    author_id: str
    viewer_id: str
    approved_at: datetime
    granted_by: str = "author"


@dataclass(slots=True)
class FeedCursor:
    created_at: datetime
    post_id: str


@dataclass(slots=True)
class ReportOutcome:
    created: bool
    flagged: bool = False
