"""Domain exceptions shared by discovery, blocks, and the feed."""

from __future__ import annotations

from fastapi import status


class CoreError(Exception):
	"""Base class for rejected caller operations.

	``detail`` is the reason code surfaced to the caller.
	"""

	status_code: int = status.HTTP_400_BAD_REQUEST
	detail: str = "bad_request"

	def __init__(self, detail: str | None = None) -> None:
		super().__init__(detail or self.detail)
		if detail:
			self.detail = detail


class ValidationError(CoreError):
	status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
	detail = "validation_error"


class NotFoundError(CoreError):
	status_code = status.HTTP_404_NOT_FOUND
	detail = "not_found"


class ForbiddenError(CoreError):
	status_code = status.HTTP_403_FORBIDDEN
	detail = "forbidden"


class BlockedError(ForbiddenError):
	"""Raised when acting against a user on the other side of a block."""

	detail = "blocked"


class RateLimitError(CoreError):
	status_code = status.HTTP_429_TOO_MANY_REQUESTS
	detail = "rate_limit"


class DependencyError(Exception):
	"""A backing read or write failed on a best-effort path."""


class BlockLookupError(DependencyError):
	"""The block registry could not be read; callers must fail closed."""

	def __init__(self, user_id: str) -> None:
		super().__init__(f"block lookup failed for {user_id}")
		self.user_id = user_id
