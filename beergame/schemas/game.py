from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from beergame.core.config import settings
from beergame.core.demand_patterns import DemandPatternType
from beergame.services.engine import Role
from beergame.services.game_session import GameStatus


class CamelModel(BaseModel):
    """Accepts both ``snake_case`` and ``camelCase`` field names on input."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ============ Requests ============

class GameCreate(CamelModel):
    max_rounds: int = Field(default_factory=lambda: settings.DEFAULT_MAX_ROUNDS, ge=1)
    inventory_cost_per_unit: float = Field(default_factory=lambda: settings.DEFAULT_INVENTORY_COST, ge=0)
    stockout_cost_per_unit: float = Field(default_factory=lambda: settings.DEFAULT_STOCKOUT_COST, ge=0)
    delivery_delay: int = Field(default_factory=lambda: settings.DEFAULT_DELIVERY_DELAY, ge=1)
    demand_pattern: DemandPatternType = Field(default=DemandPatternType.STABLE, description="Customer demand pattern")
    custom_demand: Optional[List[int]] = Field(default=None, description="Values for the custom pattern; the last one repeats")
    initial_inventory: int = Field(default_factory=lambda: settings.DEFAULT_INITIAL_INVENTORY, ge=0)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "maxRounds": 24,
                "inventoryCostPerUnit": 0.5,
                "stockoutCostPerUnit": 1.0,
                "deliveryDelay": 2,
                "demandPattern": "stable",
            }
        }
    )

    @field_validator("max_rounds")
    @classmethod
    def validate_max_rounds(cls, v: int) -> int:
        if v > settings.MAX_ROUNDS_LIMIT:
            raise ValueError(f"max_rounds must be at most {settings.MAX_ROUNDS_LIMIT}")
        return v

    @field_validator("custom_demand")
    @classmethod
    def validate_custom_demand(cls, v: Optional[List[int]]) -> Optional[List[int]]:
        if v is not None and any(value < 0 for value in v):
            raise ValueError("custom demand values must be non-negative")
        return v


class JoinGame(CamelModel):
    participant_id: str = Field(..., min_length=1, max_length=100)
    name: str = Field(..., min_length=1, max_length=100)
    role: Role


class OrderCreate(CamelModel):
    participant_id: str = Field(..., min_length=1)
    quantity: int = Field(..., ge=0, description="Units ordered from the upstream partner")


class DemandOverride(CamelModel):
    value: int = Field(..., ge=0, description="New customer demand for the round")


# ============ Responses ============

class ParticipantState(BaseModel):
    id: str
    name: str
    role: Role
    inventory: int
    backlog: int
    incoming_deliveries: List[int]
    order_history: List[int]
    total_cost: float
    current_order: int
    has_ordered: bool
    last_delivery_amount: int


class GameSnapshot(BaseModel):
    id: str
    status: GameStatus
    round: int
    max_rounds: int
    customer_demand: List[int]
    demand_pattern: Dict[str, Any]
    inventory_cost_per_unit: float
    stockout_cost_per_unit: float
    delivery_delay: int
    initial_inventory: int
    is_started: bool
    is_ended: bool
    participants: List[ParticipantState]
    rounds_played: int
    all_ordered: bool


class ParticipantSummary(BaseModel):
    id: str
    name: str
    role: Role


class GameSummary(BaseModel):
    id: str
    round: int
    max_rounds: int
    participants: List[ParticipantSummary]
    is_started: bool
    is_ended: bool


class GameCreated(BaseModel):
    game_id: str
    admin_token: str = Field(..., description="Admin credential; send as 'Authorization: Bearer <token>'")
    snapshot: GameSnapshot


class RoundRecordSchema(BaseModel):
    round: int
    customer_demand: int
    participants: List[ParticipantState]


class FinalScore(BaseModel):
    rank: int
    participant_id: str
    name: str
    role: Role
    total_cost: float


class GameResults(BaseModel):
    game_id: str
    rounds: List[RoundRecordSchema]
    final_scores: List[FinalScore]
    total_chain_cost: float
    bullwhip_index: float


class CommandAck(BaseModel):
    ok: bool = True
    message: str = "ok"
    data: Optional[Dict[str, Any]] = None
