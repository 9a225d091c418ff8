from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

import pytest

from matchfeed.domain.discovery import pipeline
from matchfeed.domain.discovery.models import RankedCandidate
from matchfeed.domain.discovery.schemas import SearchFilters, SearchRequest, SearchSort
from matchfeed.domain.exceptions import ValidationError
from matchfeed.domain.profiles import Coordinates, Profile, ReputationTier

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)
TODAY = NOW.date()
ORIGIN = Coordinates(latitude=42.33, longitude=-83.05)


def _profile(user_id: str, **overrides) -> Profile:
    values = {
        "user_id": user_id,
        "display_name": user_id,
        "gender_identity": "woman",
        "onboarding_completed": True,
        "last_active_at": NOW - timedelta(hours=2),
        "birth_date": date(1995, 1, 1),
    }
    values.update(overrides)
    return Profile(**values)


def _candidate(user_id: str, distance=None, **overrides) -> RankedCandidate:
    return RankedCandidate(profile=_profile(user_id, **overrides), distance=distance)


def test_equal_last_active_orders_trusted_before_new():
    stamp = NOW - timedelta(minutes=30)
    new = _candidate("a-new", last_active_at=stamp, reputation_tier=ReputationTier.NEW)
    trusted = _candidate("z-trusted", last_active_at=stamp, reputation_tier=ReputationTier.TRUSTED)
    ranked = pipeline.rank([new, trusted], SearchSort(field="lastActive", direction="desc"), today=TODAY)
    assert [c.profile.user_id for c in ranked] == ["z-trusted", "a-new"]


@pytest.mark.parametrize("direction", ["asc", "desc"])
def test_tier_tie_break_ignores_direction(direction):
    low = _candidate("a", distance=10, reputation_tier=ReputationTier.ACTIVE)
    high = _candidate("b", distance=10, reputation_tier=ReputationTier.DISTINGUISHED)
    ranked = pipeline.rank([low, high], SearchSort(field="distance", direction=direction), today=TODAY)
    assert ranked[0].profile.user_id == "b"


@pytest.mark.parametrize("direction", ["asc", "desc"])
def test_missing_distance_sorts_last(direction):
    unknown = _candidate("a", distance=None, reputation_tier=ReputationTier.DISTINGUISHED)
    near = _candidate("b", distance=5)
    far = _candidate("c", distance=50)
    ranked = pipeline.rank([unknown, near, far], SearchSort(field="distance", direction=direction), today=TODAY)
    assert ranked[-1].profile.user_id == "a"
    expected = ["b", "c"] if direction == "asc" else ["c", "b"]
    assert [c.profile.user_id for c in ranked[:2]] == expected


def test_age_sort_orders_by_birth_date():
    older = _candidate("old", birth_date=date(1980, 3, 1))
    younger = _candidate("young", birth_date=date(2000, 3, 1))
    ranked = pipeline.rank([older, younger], SearchSort(field="age", direction="asc"), today=TODAY)
    assert [c.profile.user_id for c in ranked] == ["young", "old"]


def test_max_distance_keeps_unknown_locations():
    profiles = [
        _profile("near", location=Coordinates(latitude=42.28, longitude=-83.74)),
        _profile("far", location=Coordinates(latitude=42.33, longitude=-86.0)),
        _profile("nowhere", location=None),
    ]
    refined = pipeline.refine(
        profiles,
        SearchFilters(max_distance=60),
        requester_id="me",
        origin=ORIGIN,
        now=NOW,
    )
    assert {c.profile.user_id for c in refined} == {"near", "nowhere"}
    by_id = {c.profile.user_id: c for c in refined}
    assert by_id["nowhere"].distance is None


def test_refine_excludes_requester_and_blocked_ids():
    profiles = [_profile("me"), _profile("blocked"), _profile("ok")]
    refined = pipeline.refine(
        profiles,
        SearchFilters(),
        requester_id="me",
        excluded=frozenset({"blocked"}),
        now=NOW,
    )
    assert [c.profile.user_id for c in refined] == ["ok"]


def test_refine_applies_implicit_compatibility_for_requester():
    requester = _profile("me", interested_in=frozenset({"men"}), support_orientation="providing")
    profiles = [
        _profile("man-receiving", gender_identity="man", support_orientation="receiving"),
        _profile("woman", gender_identity="woman", support_orientation="receiving"),
        _profile("man-providing", gender_identity="man", support_orientation="providing"),
    ]
    refined = pipeline.refine(profiles, SearchFilters(), requester_id="me", requester=requester, now=NOW)
    assert [c.profile.user_id for c in refined] == ["man-receiving"]

    explicit = pipeline.refine(
        profiles,
        SearchFilters(gender_identity=["woman"]),
        requester_id="me",
        requester=requester,
        now=NOW,
    )
    # Gender is narrowed by the store; only the implicit gender check is lifted here.
    assert [c.profile.user_id for c in explicit] == ["man-receiving", "woman"]


def test_refine_in_process_filters():
    profiles = [
        _profile("verified", identity_verified=True, values=("honesty",), smoker="no"),
        _profile("unverified", identity_verified=False, values=("honesty",), smoker="no"),
        _profile("smoker", identity_verified=True, values=("honesty",), smoker="yes"),
        _profile("other-values", identity_verified=True, values=("travel",), smoker="no"),
    ]
    filters = SearchFilters(verified_only=True, values=["Honesty"], smoker=["no"])
    refined = pipeline.refine(profiles, filters, requester_id="me", now=NOW)
    assert [c.profile.user_id for c in refined] == ["verified"]


def test_online_and_recent_activity_windows():
    profiles = [
        _profile("online", last_active_at=NOW - timedelta(minutes=5)),
        _profile("today", last_active_at=NOW - timedelta(hours=3)),
        _profile("stale", last_active_at=NOW - timedelta(days=3)),
        _profile("never", last_active_at=None),
    ]
    online = pipeline.refine(profiles, SearchFilters(online_now=True), requester_id="me", now=NOW)
    assert [c.profile.user_id for c in online] == ["online"]
    recent = pipeline.refine(profiles, SearchFilters(active_recently=True), requester_id="me", now=NOW)
    assert [c.profile.user_id for c in recent] == ["online", "today"]


def test_min_reputation_tier_filter():
    profiles = [
        _profile("new", reputation_tier=ReputationTier.NEW),
        _profile("trusted", reputation_tier=ReputationTier.TRUSTED),
    ]
    refined = pipeline.refine(
        profiles,
        SearchFilters(min_reputation_tier=ReputationTier.ESTABLISHED),
        requester_id="me",
        now=NOW,
    )
    assert [c.profile.user_id for c in refined] == ["trusted"]


def _ranked_pool(count: int) -> list[RankedCandidate]:
    stamp = NOW - timedelta(hours=1)
    candidates = []
    for index in range(count):
        # Several share a timestamp so ties are exercised across page boundaries.
        candidates.append(
            _candidate(
                f"user-{index:02d}",
                last_active_at=stamp - timedelta(minutes=index // 3),
                reputation_tier=list(ReputationTier)[index % 5],
            )
        )
    return pipeline.rank(candidates, SearchSort(), today=TODAY)


def test_cursor_pages_do_not_overlap():
    ranked = _ranked_pool(11)
    sort = SearchSort()
    seen: list[str] = []
    cursor = None
    pages = 0
    while True:
        page = pipeline.paginate(ranked, sort, limit=4, cursor=cursor, today=TODAY)
        seen.extend(c.profile.user_id for c in page.items)
        pages += 1
        assert page.total_estimate == 11
        if not page.has_more:
            assert page.next_cursor is None
            break
        cursor = page.next_cursor
    assert pages == 3
    assert len(seen) == len(set(seen)) == 11
    assert seen == [c.profile.user_id for c in ranked]


def test_offset_pagination():
    ranked = _ranked_pool(6)
    page = pipeline.paginate(ranked, SearchSort(), limit=4, offset=4, today=TODAY)
    assert [c.profile.user_id for c in page.items] == [c.profile.user_id for c in ranked[4:]]
    assert page.has_more is False


def test_bad_cursor_rejected():
    with pytest.raises(ValidationError) as excinfo:
        pipeline.paginate(_ranked_pool(3), SearchSort(), limit=2, cursor="not-a-cursor", today=TODAY)
    assert excinfo.value.detail == "bad_cursor"


def test_cursor_bound_to_sort():
    ranked = _ranked_pool(5)
    page = pipeline.paginate(ranked, SearchSort(), limit=2, today=TODAY)
    with pytest.raises(ValidationError) as excinfo:
        pipeline.paginate(
            ranked,
            SearchSort(field="distance", direction="asc"),
            limit=2,
            cursor=page.next_cursor,
            today=TODAY,
        )
    assert excinfo.value.detail == "cursor_sort_mismatch"


def test_run_uses_request_location_over_profile():
    requester = _profile("me", location=Coordinates(latitude=0.0, longitude=0.0))
    candidate = _profile("near", location=Coordinates(latitude=42.28, longitude=-83.74))
    request = SearchRequest(location={"latitude": 42.33, "longitude": -83.05}, sort={"field": "distance", "direction": "asc"})
    page = pipeline.run([candidate], request, requester_id="me", requester=requester, now=NOW)
    assert page.items[0].distance is not None
    assert page.items[0].distance < 50

    fallback = pipeline.run([candidate], SearchRequest(), requester_id="me", requester=requester, now=NOW)
    assert fallback.items[0].distance > 1000


def test_search_request_rejects_cursor_with_offset():
    with pytest.raises(ValueError):
        SearchRequest(cursor="abc", offset=2)


def test_filters_reject_inverted_age_range():
    with pytest.raises(ValueError):
        SearchFilters(min_age=40, max_age=30)

