"""Centralized v1 API router — all module routers are included here."""

from fastapi import APIRouter

from src.modules.conversation.router import router as conversation_router
from src.modules.inquiry.router import router as inquiry_router
from src.modules.messaging.router import router as messaging_router

v1_router = APIRouter(prefix="/api/v1")
v1_router.include_router(inquiry_router)
v1_router.include_router(messaging_router)
v1_router.include_router(conversation_router)
