from fastapi import APIRouter, FastAPI

from .auth import router as auth_router
from .discover import router as discover_router
from .matches import router as matches_router
from .messages import router as messages_router
from .realtime import router as realtime_router
from .users import router as users_router


def include_modular_routers(app: FastAPI) -> None:
    app.include_router(auth_router, prefix="/auth", tags=["auth"])
    app.include_router(users_router, prefix="/users", tags=["users"])
    app.include_router(discover_router, prefix="/discover", tags=["discover"])
    app.include_router(matches_router, prefix="/matches", tags=["matches"])
    app.include_router(messages_router, prefix="/messages", tags=["messages"])
    app.include_router(realtime_router, tags=["realtime"])


__all__ = ["include_modular_routers", "APIRouter"]
