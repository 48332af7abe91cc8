"""Primary API router definition."""

from fastapi import APIRouter

from . import claims, customers, redemptions, scans, vouchers

api_router = APIRouter()

api_router.include_router(vouchers.router)
api_router.include_router(scans.router)
api_router.include_router(claims.router)
api_router.include_router(redemptions.router)
api_router.include_router(customers.router)


@api_router.get("/health", tags=["health"])
async def healthcheck() -> dict[str, str]:
    """Basic health probe endpoint."""
    return {"status": "ok"}
