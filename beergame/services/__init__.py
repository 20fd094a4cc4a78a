from .coordinator import GameCoordinator, SessionRegistry
from .engine import Participant, Role, RoundRecord, SupplyChain, bullwhip_index
from .game_session import CommandResult, GameConfig, GameSession, GameStatus

__all__ = [
    "CommandResult",
    "GameConfig",
    "GameCoordinator",
    "GameSession",
    "GameStatus",
    "Participant",
    "Role",
    "RoundRecord",
    "SessionRegistry",
    "SupplyChain",
    "bullwhip_index",
]
