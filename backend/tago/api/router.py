"""
Main API router that includes all route modules.
"""
from fastapi import APIRouter
from tago.api.routes import auth, users, notifications, settlements

api_router = APIRouter()

# Include all route modules
api_router.include_router(auth.router)
api_router.include_router(users.router)
api_router.include_router(notifications.router)
api_router.include_router(settlements.router)
