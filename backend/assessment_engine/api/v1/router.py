from fastapi import APIRouter

from assessment_engine.api.v1.endpoints import assessments, attempts, health


api_router = APIRouter()
api_router.include_router(health.router)
api_router.include_router(assessments.router)
api_router.include_router(attempts.router)
