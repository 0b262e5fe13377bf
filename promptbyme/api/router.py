"""Main API router — aggregates all management endpoint modules."""

from fastapi import APIRouter

from promptbyme.api.flows import router as flows_router
from promptbyme.api.folders import router as folders_router
from promptbyme.api.logs import router as logs_router
from promptbyme.api.prompts import router as prompts_router
from promptbyme.api.versions import router as versions_router

api_router = APIRouter()

api_router.include_router(prompts_router, prefix="/prompts", tags=["prompts"])
api_router.include_router(versions_router, prefix="/prompts", tags=["versions"])
api_router.include_router(folders_router, prefix="/folders", tags=["folders"])
api_router.include_router(flows_router, prefix="/flows", tags=["flows"])
api_router.include_router(logs_router, tags=["logs"])
