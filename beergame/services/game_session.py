"""Authoritative state of one Beer Game and the commands that may change it."""

from __future__ import annotations

import functools
import random
import secrets
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from beergame.core.demand_patterns import DemandGenerator, DemandPatternType, describe_pattern, normalize_pattern_type
from beergame.core.exceptions import (
    BeerGameError,
    ErrorCode,
    GameNotFound,
    InvalidArgument,
    InvalidGameState,
    ParticipantNotFound,
)

from .engine import (
    DEFAULT_INITIAL_INVENTORY,
    Participant,
    Role,
    RoundRecord,
    SupplyChain,
    bullwhip_index,
)


class GameStatus(str, Enum):
    LOBBY = "lobby"
    ACTIVE = "active"
    ENDED = "ended"


@dataclass
class GameConfig:
    max_rounds: int = 24
    inventory_cost_per_unit: float = 0.5
    stockout_cost_per_unit: float = 1.0
    delivery_delay: int = 2
    demand_pattern: DemandPatternType = DemandPatternType.STABLE
    custom_demand: Optional[List[int]] = None
    initial_inventory: int = DEFAULT_INITIAL_INVENTORY


@dataclass
class CommandResult:
    """Outcome of a command: either ``ok`` with optional data, or an error code and reason."""

    ok: bool
    error: Optional[ErrorCode] = None
    message: str = ""
    data: Any = None

    @classmethod
    def success(cls, data: Any = None, message: str = "ok") -> "CommandResult":
        return cls(ok=True, message=message, data=data)

    @classmethod
    def failure(cls, exc: BeerGameError) -> "CommandResult":
        return cls(ok=False, error=exc.code, message=exc.message)


def session_command(func: Callable[..., Any]) -> Callable[..., CommandResult]:
    """Run a command and turn any game error it raises into a failed result.

    Commands validate everything before they mutate, so a raised error always
    leaves the session untouched.
    """

    @functools.wraps(func)
    def wrapper(self: "GameSession", *args, **kwargs) -> CommandResult:
        try:
            data = func(self, *args, **kwargs)
        except BeerGameError as exc:
            return CommandResult.failure(exc)
        return CommandResult.success(data)

    return wrapper


class GameSession:
    """One isolated game: demand schedule, four seats, round counter and history.

    The session is not thread-safe on its own; the coordinator serializes
    every call made against one instance.
    """

    def __init__(
        self,
        game_id: str,
        admin_token: str,
        config: GameConfig,
        *,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.id = game_id
        self._admin_token = admin_token
        self.max_rounds = int(config.max_rounds)
        self.inventory_cost_per_unit = float(config.inventory_cost_per_unit)
        self.stockout_cost_per_unit = float(config.stockout_cost_per_unit)
        self.delivery_delay = max(1, int(config.delivery_delay))
        self.initial_inventory = max(0, int(config.initial_inventory))
        self.demand_pattern = normalize_pattern_type(config.demand_pattern)
        self.pattern_description = describe_pattern(self.demand_pattern, config.custom_demand)

        # Drawn exactly once; nothing regenerates it later.
        self.customer_demand: List[int] = DemandGenerator.generate(
            self.demand_pattern,
            self.max_rounds,
            custom_demand=config.custom_demand,
            rng=rng,
        )

        self.round = 0
        self.is_started = False
        self.is_ended = False
        self.is_deleted = False
        self.chain = SupplyChain(
            delivery_delay=self.delivery_delay,
            inventory_cost=self.inventory_cost_per_unit,
            stockout_cost=self.stockout_cost_per_unit,
        )
        self._history: List[RoundRecord] = []

    # ------------------------------------------------------------------
    # Lifecycle helpers
    # ------------------------------------------------------------------
    @property
    def status(self) -> GameStatus:
        if self.is_ended:
            return GameStatus.ENDED
        if self.is_started:
            return GameStatus.ACTIVE
        return GameStatus.LOBBY

    @property
    def history(self) -> List[RoundRecord]:
        return list(self._history)

    def is_admin(self, token: Optional[str]) -> bool:
        if not token:
            return False
        return secrets.compare_digest(str(token).encode(), self._admin_token.encode())

    def mark_deleted(self) -> None:
        self.is_deleted = True

    def _require_live(self) -> None:
        if self.is_deleted:
            raise GameNotFound(self.id)

    def _require_not_ended(self) -> None:
        if self.is_ended:
            raise InvalidGameState(f"Game {self.id} has ended")

    def _require_active(self) -> None:
        if not self.is_started:
            raise InvalidGameState(f"Game {self.id} has not started")
        self._require_not_ended()

    def _participant(self, participant_id: str) -> Participant:
        participant = self.chain.find(str(participant_id))
        if participant is None:
            raise ParticipantNotFound(participant_id)
        return participant

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------
    @session_command
    def add_or_replace_participant(self, participant_id: str, name: str, role: Any) -> Dict[str, Any]:
        """Seat a participant in ``role``, evicting whoever held it before."""

        self._require_live()
        self._require_not_ended()
        if not participant_id:
            raise InvalidArgument("participant_id is required")
        try:
            role = Role(role)
        except ValueError:
            raise InvalidArgument(f"Unknown role '{role}'") from None

        # A participant holds one seat at most; rejoining under a new role moves them.
        self.chain.unseat(str(participant_id))
        participant = Participant(
            participant_id,
            name or str(participant_id),
            role,
            inventory=self.initial_inventory,
        )
        evicted = self.chain.seat(participant)
        return {
            "participant": participant.to_dict(),
            "evicted_id": evicted.id if evicted is not None else None,
        }

    @session_command
    def start(self) -> None:
        self._require_live()
        self._require_not_ended()
        if self.is_started:
            raise InvalidGameState(f"Game {self.id} has already started")
        if not self.chain.is_full:
            raise InvalidGameState("insufficient participants: need 4 participants to start")
        self.is_started = True
        self.round = 1

    @session_command
    def place_order(self, participant_id: str, quantity: Any) -> Dict[str, Any]:
        self._require_live()
        participant = self._participant(participant_id)
        self._require_active()
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 0:
            raise InvalidArgument("Order quantity must be a non-negative integer")
        participant.place_order(quantity)
        return {"all_ordered": self.chain.all_ordered}

    @session_command
    def process_round(self) -> Dict[str, Any]:
        self._require_live()
        self._require_active()

        index = self.round - 1
        demand = self.customer_demand[index] if 0 <= index < len(self.customer_demand) else 0
        record = self.chain.tick(self.round, demand)
        self._history.append(record)

        self.round += 1
        if self.round > self.max_rounds:
            self.is_ended = True
        return {"round_processed": record.round, "is_ended": self.is_ended}

    @session_command
    def override_future_demand(self, round_index: Any, value: Any) -> Dict[str, Any]:
        """Replace the demand of a round that has not been played yet (0-based index)."""

        self._require_live()
        self._require_not_ended()
        if isinstance(round_index, bool) or not isinstance(round_index, int):
            raise InvalidArgument("invalid round index")
        if not 0 <= round_index < len(self.customer_demand):
            raise InvalidArgument("invalid round index")
        if round_index < self.round:
            raise InvalidArgument("invalid round index: only future rounds can be changed")
        if isinstance(value, bool) or not isinstance(value, int) or value < 0:
            raise InvalidArgument("Demand must be a non-negative integer")
        self.customer_demand[round_index] = value
        return {"round_index": round_index, "value": value}

    @session_command
    def force_end(self) -> None:
        self._require_live()
        self.is_ended = True

    @session_command
    def remove_participant(self, participant_id: str) -> Dict[str, Any]:
        self._require_live()
        participant = self._participant(participant_id)
        self.chain.unseat(participant.id)
        return {"participant_id": participant.id, "role": participant.role.value}

    @session_command
    def compute_results(self) -> Dict[str, Any]:
        self._require_live()
        if not self.is_ended:
            raise InvalidGameState(f"Game {self.id} has not ended")
        return self.results()

    # ------------------------------------------------------------------
    # Read models
    # ------------------------------------------------------------------
    def results(self) -> Dict[str, Any]:
        """Final ranking and bullwhip index, derived from the ledgers and history only."""

        participants = self.chain.ordered_participants()
        ranked = sorted(participants, key=lambda p: p.total_cost)
        final_scores = [
            {
                "rank": position,
                "participant_id": p.id,
                "name": p.name,
                "role": p.role.value,
                "total_cost": p.total_cost,
            }
            for position, p in enumerate(ranked, start=1)
        ]
        return {
            "game_id": self.id,
            "rounds": [record.to_dict() for record in self._history],
            "final_scores": final_scores,
            "total_chain_cost": sum(p.total_cost for p in participants),
            "bullwhip_index": bullwhip_index(self._history),
        }

    def snapshot(self) -> Dict[str, Any]:
        """Everything a seated client may see. The admin credential is never included."""

        return {
            "id": self.id,
            "status": self.status.value,
            "round": self.round,
            "max_rounds": self.max_rounds,
            "customer_demand": list(self.customer_demand),
            "demand_pattern": dict(self.pattern_description),
            "inventory_cost_per_unit": self.inventory_cost_per_unit,
            "stockout_cost_per_unit": self.stockout_cost_per_unit,
            "delivery_delay": self.delivery_delay,
            "initial_inventory": self.initial_inventory,
            "is_started": self.is_started,
            "is_ended": self.is_ended,
            "participants": [p.to_dict() for p in self.chain.ordered_participants()],
            "rounds_played": len(self._history),
            "all_ordered": self.chain.all_ordered,
        }

    def summary(self) -> Dict[str, Any]:
        """Lobby browser view: no history, no ledgers."""

        return {
            "id": self.id,
            "round": self.round,
            "max_rounds": self.max_rounds,
            "participants": [
                {"id": p.id, "name": p.name, "role": p.role.value}
                for p in self.chain.ordered_participants()
            ],
            "is_started": self.is_started,
            "is_ended": self.is_ended,
        }

    def history_records(self, since_round: int = 0) -> List[Dict[str, Any]]:
        return [record.to_dict() for record in self._history if record.round > since_round]
