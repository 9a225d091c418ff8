"""Apply the SQL files under ``migrations/`` in filename order.

Usage: python scripts/apply_migration.py [migration_filename ...]
"""

import asyncio
import sys
from pathlib import Path

BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

from matchfeed.infra.postgres import close_pool, get_pool

MIGRATIONS_DIR = BACKEND_ROOT / "migrations"


def _resolve(names: list[str]) -> list[Path]:
    if not names:
        return sorted(MIGRATIONS_DIR.glob("*.sql"))
    paths = [MIGRATIONS_DIR / name for name in names]
    missing = [str(path) for path in paths if not path.exists()]
    if missing:
        raise SystemExit(f"Migration file not found: {', '.join(missing)}")
    return paths


async def apply_migrations(names: list[str]) -> None:
    pool = await get_pool()
    try:
        for path in _resolve(names):
            print(f"Applying migration: {path.name}")
            sql = path.read_text(encoding="utf-8")
            async with pool.acquire() as conn:
                async with conn.transaction():
                    await conn.execute(sql)
        print("Migrations applied successfully.")
    finally:
        await close_pool()


if __name__ == "__main__":
    asyncio.run(apply_migrations(sys.argv[1:]))
