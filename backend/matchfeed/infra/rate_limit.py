"""Fixed-window counters in Redis for per-caller operation budgets."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Optional

from matchfeed.infra.redis import redis_client


@dataclass(slots=True)
class WindowUsage:
	count: int
	limit: int
	resets_at: int

	@property
	def allowed(self) -> bool:
		return self.count <= self.limit


async def hit(kind: str, actor_id: str, *, limit: int, window_seconds: int = 60, now: Optional[float] = None) -> WindowUsage:
	"""Count one operation of ``kind`` by ``actor_id`` in the current window."""

	window = max(1, int(window_seconds))
	slot = int((now if now is not None else time.time()) // window)
	key = f"rl:{kind}:{actor_id}:{window}:{slot}"
	async with redis_client.pipeline(transaction=True) as pipe:
		pipe.incr(key)
		pipe.expire(key, window)
		count, _ = await pipe.execute()
	return WindowUsage(count=int(count), limit=limit, resets_at=(slot + 1) * window)


async def allow(kind: str, actor_id: str, *, limit: int, window_seconds: int = 60) -> bool:
	if limit <= 0:
		return False
	usage = await hit(kind, actor_id, limit=limit, window_seconds=window_seconds)
	return usage.allowed
