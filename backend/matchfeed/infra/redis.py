"""Shared Redis client for the feed events stream and rate limiting.

Modules import ``redis_client`` once; the client behind it can be replaced at
runtime (tests install fakeredis) through ``set_redis_client``.
"""

from __future__ import annotations

import redis.asyncio as redis

from matchfeed.settings import settings


class RedisProxy:
	"""Forwards attribute access to the currently installed client."""

	def __init__(self, client: redis.Redis):
		self._client: redis.Redis = client

	@property
	def client(self) -> redis.Redis:
		return self._client

	def set_client(self, client: redis.Redis) -> None:
		self._client = client

	def __getattr__(self, item):
		return getattr(self._client, item)


redis_client: RedisProxy = RedisProxy(redis.from_url(settings.redis_url, decode_responses=True))


def set_redis_client(client: redis.Redis) -> None:
	redis_client.set_client(client)
