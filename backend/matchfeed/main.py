"""FastAPI application entrypoint."""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager

from fastapi import FastAPI

from matchfeed.api import blocks, discovery, feed, ops, profile
from matchfeed.api.errors import install_error_handlers
from matchfeed.infra import postgres
from matchfeed.obs import init as obs_init
from matchfeed.settings import settings
from matchfeed.workers.feed_events import FeedEventsWorker


@asynccontextmanager
async def lifespan(app: FastAPI):
	if not settings.uses_memory_store():
		await postgres.init_pool()
	worker_tasks: list[asyncio.Task] = []
	worker_instances: list[object] = []
	if settings.feed_workers_enabled:
		events_worker = FeedEventsWorker()
		worker_instances.append(events_worker)
		worker_tasks.append(asyncio.create_task(events_worker.run_forever(), name="feed-events-worker"))
	app.state.feed_workers = worker_instances
	try:
		yield
	finally:
		for instance in worker_instances:
			stop = getattr(instance, "stop", None)
			if callable(stop):
				stop()
		if worker_tasks:
			for task in worker_tasks:
				task.cancel()
			await asyncio.gather(*worker_tasks, return_exceptions=True)
		await postgres.close_pool()


app = FastAPI(title="Matchfeed Core", lifespan=lifespan)
obs_init(app)
install_error_handlers(app)

app.include_router(discovery.router)
app.include_router(feed.router)
app.include_router(blocks.router)
app.include_router(profile.router)
app.include_router(ops.router)
