"""REST endpoints for posts, private access and the home feed."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from matchfeed.domain.feed import schemas
from matchfeed.domain.feed.service import FeedQueryService, PostService
from matchfeed.infra.auth import AuthenticatedUser, get_current_user

router = APIRouter(prefix="/feed", tags=["feed"])

_posts = PostService()
_feed = FeedQueryService()


@router.get("", response_model=schemas.FeedPage)
async def home_feed_endpoint(
	limit: int = Query(default=20, ge=1, le=50),
	cursor: Optional[str] = Query(default=None),
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> schemas.FeedPage:
	return await _feed.get_feed(auth_user.id, limit=limit, cursor=cursor)


@router.post("/posts", response_model=schemas.PostView, status_code=status.HTTP_201_CREATED)
async def create_post_endpoint(
	payload: schemas.PostCreate,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> schemas.PostView:
	return await _posts.create_post(auth_user.id, payload)


@router.get("/posts/{post_id}", response_model=schemas.PostView)
async def get_post_endpoint(
	post_id: str,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> schemas.PostView:
	return await _posts.get_post(auth_user.id, post_id)


@router.delete("/posts/{post_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_post_endpoint(
	post_id: str,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> None:
	await _posts.delete_post(auth_user.id, post_id)


@router.post("/posts/{post_id}/report", response_model=schemas.ReportResponse)
async def report_post_endpoint(
	post_id: str,
	payload: schemas.ReportCreate,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> schemas.ReportResponse:
	return await _posts.report_post(auth_user.id, post_id, payload)


@router.post("/posts/{post_id}/like", response_model=schemas.LikeResponse)
async def like_post_endpoint(
	post_id: str,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> schemas.LikeResponse:
	return await _posts.like_post(auth_user.id, post_id)


@router.delete("/posts/{post_id}/like", response_model=schemas.LikeResponse)
async def unlike_post_endpoint(
	post_id: str,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> schemas.LikeResponse:
	return await _posts.unlike_post(auth_user.id, post_id)


@router.post("/posts/{post_id}/comments", response_model=schemas.CommentView, status_code=status.HTTP_201_CREATED)
async def add_comment_endpoint(
	post_id: str,
	payload: schemas.CommentCreate,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> schemas.CommentView:
	return await _posts.add_comment(auth_user.id, post_id, payload)


@router.get("/posts/{post_id}/comments", response_model=schemas.CommentPage)
async def list_comments_endpoint(
	post_id: str,
	limit: int = Query(default=20, ge=1, le=50),
	cursor: Optional[str] = Query(default=None),
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> schemas.CommentPage:
	return await _posts.list_comments(auth_user.id, post_id, limit=limit, cursor=cursor)


@router.delete("/posts/{post_id}/comments/{comment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_comment_endpoint(
	post_id: str,
	comment_id: str,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> None:
	await _posts.delete_comment(auth_user.id, post_id, comment_id)


@router.get("/private-access", response_model=list[schemas.PrivateAccessEntry])
async def list_private_access_endpoint(
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> list[schemas.PrivateAccessEntry]:
	return await _posts.list_private_access(auth_user.id)


@router.post("/private-access/{viewer_id}", response_model=schemas.GrantResponse)
async def grant_private_access_endpoint(
	viewer_id: str,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> schemas.GrantResponse:
	return await _posts.grant_private_access(auth_user.id, viewer_id)


@router.delete("/private-access/{viewer_id}", status_code=status.HTTP_204_NO_CONTENT)
async def revoke_private_access_endpoint(
	viewer_id: str,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> None:
	await _posts.revoke_private_access(auth_user.id, viewer_id)
