"""Core Beer Game simulation engine for human-played sessions."""

from __future__ import annotations

import copy
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Deque, Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as np

DEFAULT_INITIAL_INVENTORY = 12

#: Rounds dropped from the front of the history before measuring variance.
BULLWHIP_WARMUP_ROUNDS = 5
#: Minimum history length before a bullwhip index is reported.
BULLWHIP_MIN_ROUNDS = 10


class Role(str, Enum):
    """Supply chain positions, declared downstream -> upstream."""

    RETAILER = "retailer"
    WHOLESALER = "wholesaler"
    DISTRIBUTOR = "distributor"
    FACTORY = "factory"

    @classmethod
    def chain(cls) -> List["Role"]:
        return list(cls)


class Participant:
    """Inventory, backlog and cost ledger for the player seated in one role."""

    def __init__(
        self,
        participant_id: str,
        name: str,
        role: Role,
        *,
        inventory: int = DEFAULT_INITIAL_INVENTORY,
        backlog: int = 0,
        incoming_deliveries: Iterable[int] | None = None,
        order_history: Iterable[int] | None = None,
        total_cost: float = 0.0,
        current_order: int = 0,
        has_ordered: bool = False,
        last_delivery_amount: int = 0,
    ) -> None:
        self.id = str(participant_id)
        self.name = name
        self.role = Role(role)
        self.inventory = max(0, int(inventory))
        self.backlog = max(0, int(backlog))
        # Oldest entry first: the head is the shipment that arrives soonest.
        self.incoming_deliveries: Deque[int] = deque(int(q) for q in (incoming_deliveries or []))
        self.order_history: List[int] = [int(q) for q in (order_history or [])]
        self.total_cost = float(total_cost)
        self.current_order = int(current_order)
        self.has_ordered = bool(has_ordered)
        self.last_delivery_amount = int(last_delivery_amount)

    def __repr__(self) -> str:
        return f"Participant(id={self.id!r}, role={self.role.value}, inventory={self.inventory}, backlog={self.backlog})"

    # ------------------------------------------------------------------
    # Ledger primitives
    # ------------------------------------------------------------------
    def place_order(self, quantity: int) -> None:
        """Record this round's order. Inventory does not move until the round is processed."""

        quantity = int(quantity)
        if quantity < 0:
            raise ValueError("Order quantity must be non-negative")
        self.current_order = quantity
        self.has_ordered = True
        self.order_history.append(quantity)

    def fulfill_order(self, requested: int) -> int:
        """Ship backlog plus ``requested`` from on-hand stock and return the amount shipped.

        Whatever cannot be shipped becomes the new backlog. This is the only
        fulfillment primitive: the retailer uses it against customer demand and
        every upstream role uses it against its downstream partner's order.
        """

        need = self.backlog + max(0, int(requested))
        if self.inventory >= need:
            self.inventory -= need
            self.backlog = 0
            return need

        delivered = self.inventory
        self.inventory = 0
        self.backlog = need - delivered
        return delivered

    def queue_delivery(self, quantity: int) -> None:
        """Put a shipment in transit towards this participant."""

        self.incoming_deliveries.append(int(quantity))

    def release_due_deliveries(self, delivery_delay: int) -> int:
        """Move the oldest shipment into inventory once it has been in transit long enough.

        The queue only gives up its head while it holds strictly more than
        ``delivery_delay`` entries, so a shipment queued during round R spends
        rounds R+1 .. R+``delivery_delay`` in transit and is released at the
        start of the following round.
        """

        if len(self.incoming_deliveries) > delivery_delay:
            arrived = self.incoming_deliveries.popleft()
            self.inventory += arrived
            self.last_delivery_amount = arrived
            return arrived
        return 0

    def accrue_cost(self, inventory_rate: float, stockout_rate: float) -> float:
        """Charge holding cost on stock and stockout cost on backlog; return this round's cost."""

        round_cost = self.inventory * inventory_rate + self.backlog * stockout_rate
        self.total_cost += round_cost
        return round_cost

    def reset_round(self) -> None:
        self.current_order = 0
        self.has_ordered = False

    # ------------------------------------------------------------------
    # Serialisation helpers
    # ------------------------------------------------------------------
    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "role": self.role.value,
            "inventory": self.inventory,
            "backlog": self.backlog,
            "incoming_deliveries": list(self.incoming_deliveries),
            "order_history": list(self.order_history),
            "total_cost": self.total_cost,
            "current_order": self.current_order,
            "has_ordered": self.has_ordered,
            "last_delivery_amount": self.last_delivery_amount,
        }


@dataclass(frozen=True)
class RoundRecord:
    """Snapshot of every seat taken right after a round was processed."""

    round: int
    customer_demand: int
    participants: Tuple[Dict[str, Any], ...] = field(default_factory=tuple)

    def participant(self, role: Role) -> Optional[Dict[str, Any]]:
        for state in self.participants:
            if state["role"] == Role(role).value:
                return state
        return None

    def order_of(self, role: Role) -> int:
        state = self.participant(role)
        return int(state["current_order"]) if state else 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "round": self.round,
            "customer_demand": self.customer_demand,
            "participants": copy.deepcopy(list(self.participants)),
        }


class SupplyChain:
    """The four seats of one game and the per-round state transition."""

    def __init__(
        self,
        *,
        delivery_delay: int,
        inventory_cost: float,
        stockout_cost: float,
    ) -> None:
        self.delivery_delay = max(1, int(delivery_delay))
        self.inventory_cost = float(inventory_cost)
        self.stockout_cost = float(stockout_cost)
        self.seats: Dict[Role, Participant] = {}

    # ------------------------------------------------------------------
    # Seat helpers
    # ------------------------------------------------------------------
    def seat(self, participant: Participant) -> Optional[Participant]:
        """Seat a participant, returning whoever previously held the role (if anyone)."""

        evicted = self.seats.get(participant.role)
        self.seats[participant.role] = participant
        return evicted

    def unseat(self, participant_id: str) -> Optional[Participant]:
        for role, participant in list(self.seats.items()):
            if participant.id == participant_id:
                return self.seats.pop(role)
        return None

    def find(self, participant_id: str) -> Optional[Participant]:
        for participant in self.seats.values():
            if participant.id == participant_id:
                return participant
        return None

    def ordered_participants(self) -> List[Participant]:
        """Seated participants from retailer up to factory."""

        return [self.seats[role] for role in Role.chain() if role in self.seats]

    @property
    def is_full(self) -> bool:
        return all(role in self.seats for role in Role.chain())

    @property
    def all_ordered(self) -> bool:
        participants = self.ordered_participants()
        return bool(participants) and all(p.has_ordered for p in participants)

    # ------------------------------------------------------------------
    # Simulation step
    # ------------------------------------------------------------------
    def tick(self, round_number: int, customer_demand: int) -> RoundRecord:
        """Process one round. The order of the steps below is load-bearing."""

        participants = self.ordered_participants()

        # Step 1 - Release shipments that have finished their transit
        for participant in participants:
            participant.release_due_deliveries(self.delivery_delay)

        # Step 2 - The retailer serves the customer; shipped goods leave the system
        retailer = self.seats.get(Role.RETAILER)
        if retailer is not None:
            retailer.fulfill_order(customer_demand)

        # Step 3 - Orders cascade upstream one pair at a time, each upstream
        # ledger updated before the next pair is evaluated
        chain = Role.chain()
        for downstream_role, upstream_role in zip(chain, chain[1:]):
            downstream = self.seats.get(downstream_role)
            upstream = self.seats.get(upstream_role)
            if downstream is None or upstream is None:
                continue
            delivered = upstream.fulfill_order(downstream.current_order)
            downstream.queue_delivery(delivered)

        # Step 4 - Factory production goes straight into its own pipeline
        factory = self.seats.get(Role.FACTORY)
        if factory is not None and factory.current_order > 0:
            factory.queue_delivery(factory.current_order)

        # Step 5 - Accrue holding and stockout costs
        for participant in participants:
            participant.accrue_cost(self.inventory_cost, self.stockout_cost)

        # Step 6 - Snapshot before orders are cleared
        record = RoundRecord(
            round=int(round_number),
            customer_demand=int(customer_demand),
            participants=tuple(copy.deepcopy(p.to_dict()) for p in participants),
        )

        # Step 7 - Clear orders for the next round
        for participant in participants:
            participant.reset_round()

        return record


def bullwhip_index(history: Sequence[RoundRecord]) -> float:
    """Ratio of factory order variance to customer demand variance.

    The first rounds are discarded to keep start-up transients out of the
    variance. Returns 0.0 for short histories and for flat demand.
    """

    if len(history) < BULLWHIP_MIN_ROUNDS:
        return 0.0

    window = history[BULLWHIP_WARMUP_ROUNDS:]
    demands = np.array([record.customer_demand for record in window], dtype=float)
    factory_orders = np.array([record.order_of(Role.FACTORY) for record in window], dtype=float)

    demand_variance = float(np.var(demands))
    if demand_variance == 0:
        return 0.0
    return float(np.var(factory_orders)) / demand_variance
