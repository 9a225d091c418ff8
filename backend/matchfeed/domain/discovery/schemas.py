"""Pydantic schemas for Discovery search and saved views."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from matchfeed.domain.profiles import ReputationTier


class SortField(str, Enum):
	DISTANCE = "distance"
	LAST_ACTIVE = "lastActive"
	NEWEST = "newest"
	AGE = "age"
	REPUTATION = "reputation"


class SortDirection(str, Enum):
	ASC = "asc"
	DESC = "desc"


class SearchSort(BaseModel):
	field: SortField = SortField.LAST_ACTIVE
	direction: SortDirection = SortDirection.DESC

	@property
	def token(self) -> str:
		return f"{self.field.value}:{self.direction.value}"


class SearchFilters(BaseModel):
	model_config = ConfigDict(extra="forbid")

	# Evaluated by the store
	gender_identity: list[str] = Field(default_factory=list, max_length=30)
	lifestyle: list[str] = Field(default_factory=list, max_length=30)
	min_age: Optional[int] = Field(default=None, ge=18, le=120)
	max_age: Optional[int] = Field(default=None, ge=18, le=120)

	# Evaluated in process over the capped pool
	max_distance: Optional[float] = Field(default=None, gt=0)
	verified_only: bool = False
	connection_types: list[str] = Field(default_factory=list, max_length=30)
	support_orientation: list[str] = Field(default_factory=list, max_length=30)
	values: list[str] = Field(default_factory=list, max_length=30)
	ethnicity: list[str] = Field(default_factory=list, max_length=30)
	relationship_status: list[str] = Field(default_factory=list, max_length=30)
	children: list[str] = Field(default_factory=list, max_length=30)
	smoker: list[str] = Field(default_factory=list, max_length=30)
	drinker: list[str] = Field(default_factory=list, max_length=30)
	education: list[str] = Field(default_factory=list, max_length=30)
	online_now: bool = False
	active_recently: bool = False
	min_reputation_tier: Optional[ReputationTier] = None
	min_profile_completeness: Optional[int] = Field(default=None, ge=0, le=100)

	@model_validator(mode="after")
	def _check_age_range(self) -> "SearchFilters":
		if self.min_age is not None and self.max_age is not None and self.min_age > self.max_age:
			raise ValueError("min_age must not exceed max_age")
		return self


class GeoPoint(BaseModel):
	latitude: float = Field(..., ge=-90, le=90)
	longitude: float = Field(..., ge=-180, le=180)


class SearchRequest(BaseModel):
	filters: SearchFilters = Field(default_factory=SearchFilters)
	sort: SearchSort = Field(default_factory=SearchSort)
	limit: int = Field(default=20, ge=1, le=50)
	cursor: Optional[str] = Field(default=None, description="Opaque continuation token")
	offset: Optional[int] = Field(default=None, ge=0)
	location: Optional[GeoPoint] = Field(default=None, description="Searcher's current coordinates")

	@model_validator(mode="after")
	def _single_pagination_mode(self) -> "SearchRequest":
		if self.cursor and self.offset is not None:
			raise ValueError("cursor and offset are mutually exclusive")
		return self


class ProfileResult(BaseModel):
	user_id: str
	display_name: str
	age: Optional[int] = None
	city: Optional[str] = None
	country: Optional[str] = None
	distance: Optional[int] = None
	last_active_at: Optional[datetime] = None
	is_online: bool = False
	show_online_status: bool = True
	show_last_active: bool = True
	show_location: bool = True
	gender_identity: Optional[str] = None
	support_orientation: Optional[str] = None
	lifestyle: Optional[str] = None
	connection_types: list[str] = Field(default_factory=list)
	values: list[str] = Field(default_factory=list)
	tagline: str = ""
	photo_url: Optional[str] = None
	photos: list[str] = Field(default_factory=list)
	identity_verified: bool = False
	reputation_tier: ReputationTier = ReputationTier.NEW
	ethnicity: Optional[str] = None
	relationship_status: Optional[str] = None
	children: Optional[str] = None
	smoker: Optional[str] = None
	drinker: Optional[str] = None
	education: Optional[str] = None
	occupation: Optional[str] = None


class SearchResponse(BaseModel):
	profiles: list[ProfileResult]
	has_more: bool = False
	next_cursor: Optional[str] = None
	total_estimate: int = 0


class SavedViewCreate(BaseModel):
	name: str = Field(..., min_length=1, max_length=50)
	filters: SearchFilters = Field(default_factory=SearchFilters)
	sort: SearchSort = Field(default_factory=SearchSort)
	is_default: bool = False


class SavedViewSummary(BaseModel):
	id: str
	name: str
	filters: SearchFilters
	sort: SearchSort
	is_default: bool
	created_at: Optional[datetime] = None
	updated_at: Optional[datetime] = None
