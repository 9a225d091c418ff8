import sys
from datetime import date, datetime, timezone
from pathlib import Path

import pytest
import pytest_asyncio
from fakeredis.aioredis import FakeRedis
from httpx import ASGITransport, AsyncClient

# Ensure backend package is importable when tests run from repo root
BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
	sys.path.insert(0, str(BACKEND_ROOT))

from matchfeed.domain.profiles import Coordinates, PrivateData, Profile, ReputationTier
from matchfeed.infra import postgres
from matchfeed.infra.redis import redis_client, set_redis_client
from matchfeed.settings import settings
from matchfeed.store import MemoryStore, set_store

DETROIT = Coordinates(latitude=42.33, longitude=-83.05)
ANN_ARBOR = Coordinates(latitude=42.28, longitude=-83.74)
# Roughly 150 miles west of Detroit
FAR_WEST = Coordinates(latitude=42.33, longitude=-86.0)


@pytest_asyncio.fixture(autouse=True)
async def fake_redis():
	original = redis_client.client
	client = FakeRedis(decode_responses=True)
	set_redis_client(client)
	try:
		yield client
	finally:
		set_redis_client(original)
		await client.flushall()


@pytest.fixture(autouse=True)
def memory_store(monkeypatch):
	monkeypatch.setattr(settings, "store_backend", "memory")
	monkeypatch.setattr(settings, "feed_workers_enabled", False)
	store = MemoryStore()
	set_store(store)
	try:
		yield store
	finally:
		set_store(None)


@pytest.fixture(autouse=True)
def patch_postgres(monkeypatch):
	async def _noop():
		return None

	monkeypatch.setattr(postgres, "init_pool", _noop)
	monkeypatch.setattr(postgres, "close_pool", _noop)


@pytest.fixture
def make_profile():
	def _make(user_id: str, **overrides) -> Profile:
		values = {
			"user_id": user_id,
			"display_name": user_id.title(),
			"gender_identity": "woman",
			"support_orientation": "either",
			"interested_in": frozenset({"men", "women", "nonbinary"}),
			"location": DETROIT,
			"birth_date": date(1994, 5, 17),
			"onboarding_completed": True,
			"last_active_at": datetime(2026, 10, 1, 12, 0, tzinfo=timezone.utc),
			"created_at": datetime(2026, 1, 1, tzinfo=timezone.utc),
		}
		values.update(overrides)
		if "interested_in" in overrides:
			values["interested_in"] = frozenset(overrides["interested_in"])
		return Profile(**values)

	return _make


@pytest.fixture
def seed(memory_store):
	async def _seed(*profiles: Profile, tiers: dict[str, ReputationTier] | None = None, blocks=(), matches=()):
		private = {user_id: PrivateData(reputation_tier=tier) for user_id, tier in (tiers or {}).items()}
		await memory_store.seed(profiles=profiles, private=private, blocks=blocks, matches=matches)

	return _seed


@pytest_asyncio.fixture
async def api_client():
	from matchfeed.main import app

	transport = ASGITransport(app=app)
	async with AsyncClient(transport=transport, base_url="http://testserver") as client:
		yield client
