from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status

from beergame.api.deps import get_admin_token, get_coordinator, unwrap
from beergame.schemas.game import (
    CommandAck,
    DemandOverride,
    GameCreate,
    GameCreated,
    GameResults,
    GameSnapshot,
    GameSummary,
    JoinGame,
    OrderCreate,
    RoundRecordSchema,
)
from beergame.services.coordinator import GameCoordinator
from beergame.services.game_session import GameConfig

router = APIRouter()


# Game endpoints
@router.post("", response_model=GameCreated, status_code=status.HTTP_201_CREATED)
def create_game(
    game_in: GameCreate,
    coordinator: GameCoordinator = Depends(get_coordinator),
):
    """
    Create a game in the lobby state.

    The response carries the admin token; it is the only credential accepted
    by the admin-only endpoints of this game and is never returned again.
    """
    config = GameConfig(
        max_rounds=game_in.max_rounds,
        inventory_cost_per_unit=game_in.inventory_cost_per_unit,
        stockout_cost_per_unit=game_in.stockout_cost_per_unit,
        delivery_delay=game_in.delivery_delay,
        demand_pattern=game_in.demand_pattern,
        custom_demand=game_in.custom_demand,
        initial_inventory=game_in.initial_inventory,
    )
    return unwrap(coordinator.create_game(config))


@router.get("", response_model=List[GameSummary])
def list_games(coordinator: GameCoordinator = Depends(get_coordinator)):
    """Lobby view of every live game."""
    return coordinator.list_games()


@router.get("/{game_id}", response_model=GameSnapshot)
def get_game_state(game_id: str, coordinator: GameCoordinator = Depends(get_coordinator)):
    return unwrap(coordinator.get_snapshot(game_id))


@router.get("/{game_id}/history", response_model=List[RoundRecordSchema])
def get_history(
    game_id: str,
    since_round: int = Query(0, ge=0, description="Only return rounds after this one"),
    coordinator: GameCoordinator = Depends(get_coordinator),
):
    return unwrap(coordinator.get_history(game_id, since_round))


@router.get("/{game_id}/results", response_model=GameResults)
def get_results(game_id: str, coordinator: GameCoordinator = Depends(get_coordinator)):
    """Final costs and bullwhip index. Only available once the game has ended."""
    return unwrap(coordinator.get_results(game_id))


@router.post("/{game_id}/join", response_model=GameSnapshot)
def join_game(
    game_id: str,
    join_in: JoinGame,
    coordinator: GameCoordinator = Depends(get_coordinator),
):
    """
    Take a role in the game. Whoever held the role before is replaced.
    """
    data = unwrap(coordinator.join_game(game_id, join_in.participant_id, join_in.name, join_in.role))
    return data["snapshot"]


@router.post("/{game_id}/orders", response_model=CommandAck)
def place_order(
    game_id: str,
    order_in: OrderCreate,
    coordinator: GameCoordinator = Depends(get_coordinator),
):
    data = unwrap(coordinator.place_order(game_id, order_in.participant_id, order_in.quantity))
    return CommandAck(data=data)


# Admin-only endpoints
@router.post("/{game_id}/start", response_model=CommandAck)
def start_game(
    game_id: str,
    admin_token: Optional[str] = Depends(get_admin_token),
    coordinator: GameCoordinator = Depends(get_coordinator),
):
    unwrap(coordinator.start_game(game_id, admin_token))
    return CommandAck()


@router.post("/{game_id}/rounds", response_model=CommandAck)
def process_round(
    game_id: str,
    admin_token: Optional[str] = Depends(get_admin_token),
    coordinator: GameCoordinator = Depends(get_coordinator),
):
    """Advance the game by one round. Participants that have not ordered order 0."""
    data = unwrap(coordinator.process_round(game_id, admin_token))
    return CommandAck(data=data)


@router.put("/{game_id}/demand/{round_index}", response_model=CommandAck)
def override_demand(
    game_id: str,
    round_index: int,
    demand_in: DemandOverride,
    admin_token: Optional[str] = Depends(get_admin_token),
    coordinator: GameCoordinator = Depends(get_coordinator),
):
    """Change the customer demand of a future round (0-based index into the schedule)."""
    data = unwrap(coordinator.override_future_demand(game_id, admin_token, round_index, demand_in.value))
    return CommandAck(data=data)


@router.post("/{game_id}/end", response_model=CommandAck)
def force_end(
    game_id: str,
    admin_token: Optional[str] = Depends(get_admin_token),
    coordinator: GameCoordinator = Depends(get_coordinator),
):
    unwrap(coordinator.force_end(game_id, admin_token))
    return CommandAck()


@router.delete("/{game_id}/participants/{participant_id}", response_model=CommandAck)
def remove_participant(
    game_id: str,
    participant_id: str,
    admin_token: Optional[str] = Depends(get_admin_token),
    coordinator: GameCoordinator = Depends(get_coordinator),
):
    data = unwrap(coordinator.remove_participant(game_id, admin_token, participant_id))
    return CommandAck(data=data)


@router.delete("/{game_id}", response_model=CommandAck)
def delete_game(
    game_id: str,
    admin_token: Optional[str] = Depends(get_admin_token),
    coordinator: GameCoordinator = Depends(get_coordinator),
):
    unwrap(coordinator.delete_game(game_id, admin_token))
    return CommandAck()
