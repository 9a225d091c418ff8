"""Operational endpoints: health checks and Prometheus metrics."""

from __future__ import annotations

from fastapi import APIRouter, Response, status
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from matchfeed.infra import postgres
from matchfeed.infra.redis import redis_client
from matchfeed.settings import settings

router = APIRouter(tags=["ops"])


@router.get("/health/live")
async def health_live() -> dict[str, str]:
	return {"status": "ok", "service": settings.service_name, "commit": settings.git_commit}


@router.get("/health/ready")
async def health_ready() -> Response:
	checks: dict[str, bool] = {}
	try:
		await redis_client.ping()
		checks["redis"] = True
	except Exception:
		checks["redis"] = False
	if settings.uses_memory_store():
		checks["postgres"] = True
	else:
		try:
			pool = await postgres.get_pool()
			async with pool.acquire() as conn:
				await conn.execute("SELECT 1")
			checks["postgres"] = True
		except Exception:
			checks["postgres"] = False
	ok = all(checks.values())
	code = status.HTTP_200_OK if ok else status.HTTP_503_SERVICE_UNAVAILABLE
	return JSONResponse(content={"status": "ok" if ok else "degraded", "checks": checks}, status_code=code)


@router.get("/metrics")
async def prometheus_metrics() -> Response:
	payload = generate_latest()
	return Response(content=payload, media_type=CONTENT_TYPE_LATEST)
