from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

import pytest

from matchfeed.domain.discovery import schemas
from matchfeed.domain.discovery.retrieval import CandidateRetriever
from matchfeed.domain.discovery.saved_views import SavedViewService
from matchfeed.domain.discovery.service import DiscoveryService
from matchfeed.domain.exceptions import NotFoundError, RateLimitError
from matchfeed.domain.profiles import ReputationTier
from matchfeed.infra.auth import AuthenticatedUser
from matchfeed.settings import settings

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)
ME = AuthenticatedUser(id="me")


@pytest.mark.asyncio
async def test_search_excludes_blocks_in_both_directions(make_profile, seed):
    await seed(
        make_profile("me"),
        make_profile("blocked-by-me"),
        make_profile("blocker"),
        make_profile("visible"),
        blocks=[("me", "blocked-by-me"), ("blocker", "me")],
    )
    response = await DiscoveryService().search(ME, schemas.SearchRequest(), now=NOW)
    assert [p.user_id for p in response.profiles] == ["visible"]
    assert response.total_estimate == 1


@pytest.mark.asyncio
async def test_search_fails_closed_when_block_lookup_fails(make_profile, seed, memory_store, monkeypatch):
    await seed(make_profile("me"), make_profile("someone"))

    async def _boom(user_id):
        raise ConnectionError("block index unavailable")

    monkeypatch.setattr(memory_store, "list_blocked_by", _boom)
    response = await DiscoveryService().search(ME, schemas.SearchRequest(), now=NOW)
    assert response.profiles == []
    assert response.has_more is False


@pytest.mark.asyncio
async def test_search_skips_unsearchable_profiles(make_profile, seed):
    await seed(
        make_profile("me"),
        make_profile("hidden", is_visible=False),
        make_profile("incomplete", onboarding_completed=False),
        make_profile("leaving", pending_deletion=True),
        make_profile("ok"),
    )
    response = await DiscoveryService().search(ME, schemas.SearchRequest(), now=NOW)
    assert [p.user_id for p in response.profiles] == ["ok"]


@pytest.mark.asyncio
async def test_search_age_and_gender_narrowing(make_profile, seed):
    await seed(
        make_profile("me"),
        make_profile("young-woman", birth_date=date(2003, 1, 1)),
        make_profile("woman-40", birth_date=date(1986, 1, 1)),
        make_profile("man-40", gender_identity="man", birth_date=date(1986, 1, 1)),
    )
    request = schemas.SearchRequest(filters=schemas.SearchFilters(gender_identity=["woman"], min_age=30, max_age=45))
    response = await DiscoveryService().search(ME, request, now=NOW)
    assert [p.user_id for p in response.profiles] == ["woman-40"]
    assert response.profiles[0].age == 40


@pytest.mark.asyncio
async def test_search_orders_equal_activity_by_tier(make_profile, seed):
    stamp = NOW - timedelta(hours=1)
    await seed(
        make_profile("me"),
        make_profile("a-new", last_active_at=stamp),
        make_profile("b-trusted", last_active_at=stamp),
        tiers={"a-new": ReputationTier.NEW, "b-trusted": ReputationTier.TRUSTED},
    )
    response = await DiscoveryService().search(ME, schemas.SearchRequest(), now=NOW)
    assert [p.user_id for p in response.profiles] == ["b-trusted", "a-new"]
    assert response.profiles[0].reputation_tier == ReputationTier.TRUSTED


@pytest.mark.asyncio
async def test_search_projection_respects_privacy_toggles(make_profile, seed):
    await seed(
        make_profile("me"),
        make_profile(
            "private-person",
            city="Detroit",
            country="US",
            show_location=False,
            show_online_status=False,
            last_active_at=NOW - timedelta(minutes=2),
            photos=("https://cdn.example/p1.jpg",),
        ),
    )
    response = await DiscoveryService().search(ME, schemas.SearchRequest(), now=NOW)
    result = response.profiles[0]
    assert result.city is None and result.country is None
    assert result.is_online is False
    # Online users never expose their exact last-active time.
    assert result.last_active_at is None
    assert result.photo_url == "https://cdn.example/p1.jpg"


@pytest.mark.asyncio
async def test_search_paginates_with_cursor(make_profile, seed):
    profiles = [make_profile("me")]
    for index in range(5):
        profiles.append(make_profile(f"user-{index}", last_active_at=NOW - timedelta(hours=index + 1)))
    await seed(*profiles)
    service = DiscoveryService()
    first = await service.search(ME, schemas.SearchRequest(limit=3), now=NOW)
    assert [p.user_id for p in first.profiles] == ["user-0", "user-1", "user-2"]
    assert first.has_more is True
    second = await service.search(ME, schemas.SearchRequest(limit=3, cursor=first.next_cursor), now=NOW)
    assert [p.user_id for p in second.profiles] == ["user-3", "user-4"]
    assert second.has_more is False


@pytest.mark.asyncio
async def test_search_rate_limited(make_profile, seed, monkeypatch):
    await seed(make_profile("me"))
    monkeypatch.setattr(settings, "search_per_minute", 2)
    service = DiscoveryService()
    await service.search(ME, schemas.SearchRequest(), now=NOW)
    await service.search(ME, schemas.SearchRequest(), now=NOW)
    with pytest.raises(RateLimitError):
        await service.search(ME, schemas.SearchRequest(), now=NOW)


@pytest.mark.asyncio
async def test_retriever_falls_back_to_lowest_tier(make_profile, seed, memory_store, monkeypatch):
    await seed(
        make_profile("a"),
        make_profile("b"),
        make_profile("c"),
        tiers={"a": ReputationTier.TRUSTED, "b": ReputationTier.TRUSTED},
    )
    original = memory_store.get_private_data

    async def _flaky(user_id):
        if user_id == "b":
            raise TimeoutError("private partition timeout")
        return await original(user_id)

    monkeypatch.setattr(memory_store, "get_private_data", _flaky)
    retriever = CandidateRetriever(batch_size=2)
    pool = await retriever.retrieve(schemas.SearchFilters(), requester_id=None)
    tiers = {profile.user_id: profile.reputation_tier for profile in pool}
    assert tiers == {
        "a": ReputationTier.TRUSTED,
        "b": ReputationTier.NEW,
        "c": ReputationTier.NEW,
    }


@pytest.mark.asyncio
async def test_retriever_ignores_malformed_private_rows(make_profile, seed, memory_store, monkeypatch):
    await seed(make_profile("a"), tiers={"a": ReputationTier.TRUSTED})

    async def _raw_row(user_id):
        return {"reputation_tier": "trusted"}

    monkeypatch.setattr(memory_store, "get_private_data", _raw_row)
    pool = await CandidateRetriever().retrieve(schemas.SearchFilters(), requester_id=None)
    assert [(profile.user_id, profile.reputation_tier) for profile in pool] == [("a", ReputationTier.NEW)]


@pytest.mark.asyncio
async def test_retriever_caps_pool(make_profile, seed):
    await seed(*[make_profile(f"u{index}") for index in range(6)])
    pool = await CandidateRetriever().retrieve(schemas.SearchFilters(), requester_id=None, limit=4)
    assert len(pool) == 4


@pytest.mark.asyncio
async def test_saved_views_lifecycle():
    service = SavedViewService()
    first = await service.save_view(
        "me",
        schemas.SavedViewCreate(
            name="  Nearby  ",
            filters=schemas.SearchFilters(max_distance=25, verified_only=True),
            sort=schemas.SearchSort(field="distance", direction="asc"),
            is_default=True,
        ),
    )
    assert first.name == "Nearby"
    assert first.filters.max_distance == 25
    second = await service.save_view("me", schemas.SavedViewCreate(name="Recent", is_default=True))

    views = await service.list_views("me")
    defaults = [view.id for view in views if view.is_default]
    assert defaults == [second.id]

    await service.set_default_view("me", first.id)
    views = {view.id: view for view in await service.list_views("me")}
    assert views[first.id].is_default and not views[second.id].is_default

    await service.delete_view("me", second.id)
    assert [view.id for view in await service.list_views("me")] == [first.id]
    assert await service.list_views("someone-else") == []


@pytest.mark.asyncio
async def test_saved_views_are_owner_scoped():
    service = SavedViewService()
    view = await service.save_view("me", schemas.SavedViewCreate(name="Mine"))
    with pytest.raises(NotFoundError):
        await service.delete_view("intruder", view.id)
    with pytest.raises(NotFoundError):
        await service.set_default_view("intruder", view.id)
