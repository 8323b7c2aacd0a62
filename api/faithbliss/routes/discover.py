from typing import Any

from fastapi import APIRouter, Depends

from ..auth.deps import get_current_user
from ..services import profiles

router = APIRouter()


@router.get("/stats")
def discover_stats(current_user: dict[str, Any] = Depends(get_current_user)) -> dict[str, int]:
    return profiles.discover_stats(str(current_user["id"]))
