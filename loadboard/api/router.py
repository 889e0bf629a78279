from fastapi import APIRouter

from loadboard.routers import bookings, health, loads

api_router = APIRouter()

api_router.include_router(health.router, tags=["Health"])
api_router.include_router(loads.router, prefix="/load", tags=["Loads"])
api_router.include_router(bookings.router, prefix="/booking", tags=["Bookings"])
