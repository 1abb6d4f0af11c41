from fastapi import APIRouter
from research_api.api.endpoints import research

api_router = APIRouter()

api_router.include_router(research.router)
