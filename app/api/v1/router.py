"""API v1 router aggregating all endpoints."""

from fastapi import APIRouter

from app.api.v1 import trigger, webhooks

api_router = APIRouter()

api_router.include_router(trigger.router, prefix="/trigger", tags=["trigger"])
api_router.include_router(webhooks.router, prefix="/webhooks", tags=["webhooks"])
