from fastapi import APIRouter

from loadboard.core.db import check_database_connection

router = APIRouter()


@router.get("/healthz", summary="Health check")
async def health_check() -> dict[str, str]:
    database = "up" if await check_database_connection() else "down"
    return {"status": "ok", "database": database}
