from __future__ import annotations

from fastapi import APIRouter

from api.routes import timetable


api_router = APIRouter()
api_router.include_router(timetable.router, prefix="/schools/{school_id}/timetable", tags=["timetable"])
