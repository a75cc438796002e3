from fastapi import APIRouter

from server.features.media.api import router as media_router

api_router = APIRouter()
api_router.include_router(media_router)
