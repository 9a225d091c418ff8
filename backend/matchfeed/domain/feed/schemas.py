"""Pydantic schemas for the feed API."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from matchfeed.domain.feed.models import (
    ContentType,
    FeedReason,
    PostStatus,
    PostVisibility,
)

MAX_TEXT_LENGTH = 500
MAX_COMMENT_LENGTH = 280
MAX_MEDIA_ITEMS = 4


class MediaIn(BaseModel):
    url: str = Field(..., min_length=1, max_length=2048)
    type: ContentType = ContentType.IMAGE
    thumb_url: Optional[str] = Field(default=None, max_length=2048)
    width: Optional[int] = Field(default=None, ge=1)
    height: Optional[int] = Field(default=None, ge=1)


class ContentIn(BaseModel):
    type: ContentType
    text: Optional[str] = Field(default=None, max_length=MAX_TEXT_LENGTH)
    media: list[MediaIn] = Field(default_factory=list, max_length=MAX_MEDIA_ITEMS)


class PostCreate(BaseModel):
    visibility: PostVisibility = PostVisibility.PUBLIC
    content: ContentIn


class MediaOut(BaseModel):
    url: str
    type: str
    thumb_url: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None


class PostView(BaseModel):
    id: str
    author_id: str
    author_name: str
    author_photo_url: Optional[str] = None
    visibility: PostVisibility
    content_type: ContentType
    text: Optional[str] = None
    media: list[MediaOut] = Field(default_factory=list)
    status: PostStatus
    like_count: int = 0
    comment_count: int = 0
    created_at: datetime
    updated_at: datetime


class CommentCreate(BaseModel):
    content: str = Field(..., min_length=1, max_length=MAX_COMMENT_LENGTH)


class CommentView(BaseModel):
    id: str
    post_id: str
    author_id: str
    content: str
    created_at: datetime
    is_own: bool = False


class CommentPage(BaseModel):
    comments: list[CommentView]
    next_cursor: Optional[str] = None
    has_more: bool = False


class ReportCreate(BaseModel):
    reason: str = Field(default="", max_length=500)


class ReportResponse(BaseModel):
    reported: bool = True
    already_reported: bool = False


class LikeResponse(BaseModel):
    liked: bool


class GrantResponse(BaseModel):
    granted: bool = True
    already_granted: bool = False


class PrivateAccessEntry(BaseModel):
    viewer_id: str
    approved_at: datetime


class FeedPreviewView(BaseModel):
    author_name: str
    author_photo_url: Optional[str] = None
    content_excerpt: str
    has_media: bool


class FeedItemView(BaseModel):
    post_id: str
    author_id: str
    reason: FeedReason
    visibility: PostVisibility
    created_at: datetime
    inserted_at: datetime
    preview: FeedPreviewView


class FeedPage(BaseModel):
    items: list[FeedItemView]
    next_cursor: Optional[str] = None
    has_more: bool = False
