from fastapi import APIRouter

from padel_alert.api.rules import router as rules_router
from padel_alert.api.search import router as search_router
from padel_alert.api.users import router as users_router

api_router = APIRouter()
api_router.include_router(rules_router)
api_router.include_router(search_router)
api_router.include_router(users_router)
