from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter, Depends

from beergame.api.deps import get_coordinator
from beergame.services.coordinator import GameCoordinator

router = APIRouter()


@router.get("/health")
def health_check(coordinator: GameCoordinator = Depends(get_coordinator)) -> Dict[str, Any]:
    """
    Liveness probe. Reports how many games are held in memory.
    """
    return {
        "status": "ok",
        "games": len(coordinator.registry),
        "time": datetime.now(timezone.utc).isoformat(),
    }
