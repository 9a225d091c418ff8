import pytest

from matchfeed.domain.profiles import Coordinates
from matchfeed.infra.redis import redis_client

DETROIT = Coordinates(latitude=42.33, longitude=-83.05)
ANN_ARBOR = Coordinates(latitude=42.28, longitude=-83.74)


def _headers(user_id: str) -> dict[str, str]:
	return {"X-User-Id": user_id}


@pytest.fixture
def people(make_profile):
	return [
		make_profile("author", gender_identity="woman", support_orientation="providing", location=DETROIT),
		make_profile(
			"viewer",
			gender_identity="man",
			support_orientation="receiving",
			interested_in={"women"},
			location=ANN_ARBOR,
		),
	]


@pytest.mark.asyncio
async def test_requests_require_caller_identity(api_client):
	response = await api_client.post("/discovery/search", json={})
	assert response.status_code == 401
	assert response.json()["detail"] == "unauthenticated"


@pytest.mark.asyncio
async def test_search_endpoint(api_client, people, seed):
	await seed(*people)
	response = await api_client.post(
		"/discovery/search",
		json={"sort": {"field": "distance", "direction": "asc"}, "limit": 10},
		headers=_headers("viewer"),
	)
	assert response.status_code == 200
	payload = response.json()
	assert [p["user_id"] for p in payload["profiles"]] == ["author"]
	assert 30 <= payload["profiles"][0]["distance"] <= 45
	assert payload["has_more"] is False


@pytest.mark.asyncio
async def test_search_validation_errors(api_client, people, seed):
	await seed(*people)
	response = await api_client.post(
		"/discovery/search",
		json={"filters": {"min_age": 40, "max_age": 30}},
		headers=_headers("viewer"),
	)
	assert response.status_code == 422
	body = response.json()
	assert body["detail"] == "validation_error"
	assert all("ctx" not in error for error in body["errors"])

	response = await api_client.post(
		"/discovery/search",
		json={"cursor": "garbage"},
		headers=_headers("viewer"),
	)
	assert response.status_code == 422
	assert response.json()["detail"] == "bad_cursor"


@pytest.mark.asyncio
async def test_saved_views_endpoints(api_client):
	created = await api_client.post(
		"/discovery/views",
		json={"name": "Close by", "filters": {"max_distance": 20}, "is_default": True},
		headers=_headers("viewer"),
	)
	assert created.status_code == 201
	view_id = created.json()["id"]

	listed = await api_client.get("/discovery/views", headers=_headers("viewer"))
	assert [view["id"] for view in listed.json()] == [view_id]

	assert (await api_client.post(f"/discovery/views/{view_id}/default", headers=_headers("viewer"))).status_code == 200
	assert (await api_client.delete(f"/discovery/views/{view_id}", headers=_headers("viewer"))).status_code == 204
	missing = await api_client.delete(f"/discovery/views/{view_id}", headers=_headers("viewer"))
	assert missing.status_code == 404
	assert missing.json()["detail"] == "view_not_found"


@pytest.mark.asyncio
async def test_post_and_feed_flow(api_client, people, seed):
	await seed(*people)
	created = await api_client.post(
		"/feed/posts",
		json={"visibility": "public", "content": {"type": "text", "text": "Hello from Detroit"}},
		headers=_headers("author"),
	)
	assert created.status_code == 201
	post_id = created.json()["id"]

	feed = await api_client.get("/feed", headers=_headers("viewer"))
	assert feed.status_code == 200
	items = feed.json()["items"]
	assert [item["post_id"] for item in items] == [post_id]
	assert items[0]["reason"] == "public"
	assert items[0]["preview"]["content_excerpt"] == "Hello from Detroit"

	liked = await api_client.post(f"/feed/posts/{post_id}/like", headers=_headers("viewer"))
	assert liked.json() == {"liked": True}
	comment = await api_client.post(
		f"/feed/posts/{post_id}/comments",
		json={"content": "Count me in"},
		headers=_headers("viewer"),
	)
	assert comment.status_code == 201
	comments = await api_client.get(f"/feed/posts/{post_id}/comments", headers=_headers("author"))
	assert [c["content"] for c in comments.json()["comments"]] == ["Count me in"]

	post = await api_client.get(f"/feed/posts/{post_id}", headers=_headers("viewer"))
	assert post.json()["like_count"] == 1
	assert post.json()["comment_count"] == 1

	forbidden = await api_client.delete(f"/feed/posts/{post_id}", headers=_headers("viewer"))
	assert forbidden.status_code == 403
	assert forbidden.json()["detail"] == "not_post_owner"
	deleted = await api_client.delete(f"/feed/posts/{post_id}", headers=_headers("author"))
	assert deleted.status_code == 204

	feed = await api_client.get("/feed", headers=_headers("viewer"))
	assert feed.json()["items"] == []
	missing = await api_client.get(f"/feed/posts/{post_id}", headers=_headers("viewer"))
	assert missing.status_code == 404
	assert missing.json()["detail"] == "post_not_found"


@pytest.mark.asyncio
async def test_create_post_rejects_oversized_text(api_client, people, seed):
	await seed(*people)
	response = await api_client.post(
		"/feed/posts",
		json={"content": {"type": "text", "text": "x" * 501}},
		headers=_headers("author"),
	)
	assert response.status_code == 422


@pytest.mark.asyncio
async def test_private_access_endpoints(api_client, people, seed):
	await seed(*people)
	created = await api_client.post(
		"/feed/posts",
		json={"visibility": "private", "content": {"type": "text", "text": "Only for you"}},
		headers=_headers("author"),
	)
	post_id = created.json()["id"]

	granted = await api_client.post("/feed/private-access/viewer", headers=_headers("author"))
	assert granted.json() == {"granted": True, "already_granted": False}
	listing = await api_client.get("/feed/private-access", headers=_headers("author"))
	assert [entry["viewer_id"] for entry in listing.json()] == ["viewer"]
	feed = await api_client.get("/feed", headers=_headers("viewer"))
	assert [item["post_id"] for item in feed.json()["items"]] == [post_id]

	revoked = await api_client.delete("/feed/private-access/viewer", headers=_headers("author"))
	assert revoked.status_code == 204
	feed = await api_client.get("/feed", headers=_headers("viewer"))
	assert feed.json()["items"] == []


@pytest.mark.asyncio
async def test_block_endpoints_and_guard(api_client, people, seed):
	await seed(*people)
	created = await api_client.post(
		"/feed/posts",
		json={"content": {"type": "text", "text": "hi"}},
		headers=_headers("author"),
	)
	post_id = created.json()["id"]

	blocked = await api_client.post("/blocks/author", headers=_headers("viewer"))
	assert blocked.json() == {"user_id": "author", "blocked": True, "changed": True}
	listing = await api_client.get("/blocks", headers=_headers("viewer"))
	assert listing.json() == {"blocked_user_ids": ["author"]}

	like = await api_client.post(f"/feed/posts/{post_id}/like", headers=_headers("viewer"))
	assert like.status_code == 403
	assert like.json()["detail"] == "blocked"

	self_block = await api_client.post("/blocks/viewer", headers=_headers("viewer"))
	assert self_block.status_code == 422

	unblocked = await api_client.delete("/blocks/author", headers=_headers("viewer"))
	assert unblocked.json()["changed"] is True


@pytest.mark.asyncio
async def test_block_lookup_outage_returns_503(api_client, people, seed, memory_store, monkeypatch):
	await seed(*people)
	created = await api_client.post(
		"/feed/posts",
		json={"content": {"type": "text", "text": "hi"}},
		headers=_headers("author"),
	)
	post_id = created.json()["id"]

	async def _boom(user_id):
		raise ConnectionError("down")

	monkeypatch.setattr(memory_store, "list_blocked_by", _boom)
	response = await api_client.post(f"/feed/posts/{post_id}/like", headers=_headers("viewer"))
	assert response.status_code == 503
	assert response.json()["detail"] == "dependency_unavailable"

	search = await api_client.post("/discovery/search", json={}, headers=_headers("viewer"))
	assert search.status_code == 200
	assert search.json()["profiles"] == []


@pytest.mark.asyncio
async def test_onboarding_endpoint(api_client, make_profile, seed):
	await seed(make_profile("fresh", onboarding_completed=False))
	response = await api_client.post("/profile/onboarding/complete", headers=_headers("fresh"))
	assert response.status_code == 200
	assert response.json() == {"user_id": "fresh", "searchable": True, "already_completed": False}

	missing = await api_client.post("/profile/onboarding/complete", headers=_headers("ghost"))
	assert missing.status_code == 404


@pytest.mark.asyncio
async def test_ops_endpoints(api_client):
	live = await api_client.get("/health/live")
	assert live.status_code == 200
	assert live.json()["status"] == "ok"

	metrics = await api_client.get("/metrics")
	assert metrics.status_code == 200
	assert "matchfeed" in metrics.text


@pytest.mark.asyncio
async def test_readiness_reports_dependency_checks(api_client, monkeypatch):
	ready = await api_client.get("/health/ready")
	assert ready.status_code == 200
	assert ready.json()["checks"] == {"redis": True, "postgres": True}

	async def failing_ping():
		raise ConnectionError("redis down")

	monkeypatch.setattr(redis_client.client, "ping", failing_ping)
	degraded = await api_client.get("/health/ready")
	assert degraded.status_code == 503
	assert degraded.json()["status"] == "degraded"
