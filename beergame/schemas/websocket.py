from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class EventType(str, Enum):
    """Server -> subscriber broadcast events."""
    SNAPSHOT_UPDATED = "snapshot-updated"
    GAME_STARTED = "game-started"
    ROUND_PROCESSED = "round-processed"
    GAME_ENDED = "game-ended"
    GAME_DELETED = "game-deleted"
    PARTICIPANT_REMOVED = "participant-removed"
    ALL_PLAYERS_ORDERED = "all-players-ordered"
    GAMES_LIST_UPDATED = "games-list-updated"


class RequestType(str, Enum):
    """Client -> server request messages accepted on a game socket."""
    GET_STATE = "get_state"
    JOIN = "join"
    PLACE_ORDER = "place_order"
    START = "start"
    PROCESS_ROUND = "process_round"
    UPDATE_DEMAND = "update_demand"
    FORCE_END = "force_end"
    REMOVE_PARTICIPANT = "remove_participant"
    DELETE = "delete"
    PING = "ping"


class GameEvent(BaseModel):
    """Broadcast event envelope"""
    type: EventType
    game_id: Optional[str] = None
    data: Any = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def to_message(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")


class WebSocketRequest(BaseModel):
    """Request message received from a client"""
    type: RequestType
    request_id: Optional[str] = None
    admin_token: Optional[str] = None
    participant_id: Optional[str] = None
    name: Optional[str] = None
    role: Optional[str] = None
    quantity: Optional[int] = None
    round_index: Optional[int] = None
    value: Optional[int] = None


class WebSocketReply(BaseModel):
    """Reply to a single request, sent only to the requesting socket"""
    type: str = "reply"
    request_id: Optional[str] = None
    ok: bool
    error: Optional[str] = None
    message: str = ""
    data: Any = None
