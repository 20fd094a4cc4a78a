from typing import Any, Dict, List, Optional, Sequence
import random
from enum import Enum


class DemandPatternType(str, Enum):
    STABLE = "stable"
    INCREASING = "increasing"
    RANDOM = "random"
    CUSTOM = "custom"


BASELINE_DEMAND = 4
WARMUP_ROUNDS = 4

DEFAULT_RANDOM_PARAMS = {
    "min_demand": 2,
    "max_demand": 12,
}


def _safe_int(value: Any, default: int) -> int:
    """Convert a value to a non-negative integer, falling back to the provided default."""
    try:
        if value is None:
            raise ValueError("None")
        return max(0, int(value))
    except (TypeError, ValueError):
        return default


def normalize_pattern_type(raw: Any) -> DemandPatternType:
    """Map a selector string (or enum) to a pattern type, defaulting to stable."""
    if isinstance(raw, DemandPatternType):
        return raw
    try:
        return DemandPatternType(str(raw).lower())
    except ValueError:
        return DemandPatternType.STABLE


class DemandGenerator:
    """Generates the customer demand schedule for a whole game.

    Rounds are numbered from 1; the schedule index for round ``n`` is ``n - 1``.
    """

    @staticmethod
    def generate_stable(num_rounds: int) -> List[int]:
        """Four units for the warm-up rounds, eight afterwards."""
        return [
            BASELINE_DEMAND if week <= WARMUP_ROUNDS else 2 * BASELINE_DEMAND
            for week in range(1, num_rounds + 1)
        ]

    @staticmethod
    def generate_increasing(num_rounds: int) -> List[int]:
        """Step up by four every four rounds, then jump to 20 for the last 30%."""
        demand: List[int] = []
        for week in range(1, num_rounds + 1):
            if week <= 4:
                demand.append(4)
            elif week <= 8:
                demand.append(8)
            elif week <= 12:
                demand.append(12)
            elif week <= num_rounds * 0.7:
                demand.append(16)
            else:
                demand.append(20)
        return demand

    @staticmethod
    def generate_random(
        num_rounds: int,
        min_demand: int = DEFAULT_RANDOM_PARAMS["min_demand"],
        max_demand: int = DEFAULT_RANDOM_PARAMS["max_demand"],
        rng: Optional[random.Random] = None,
    ) -> List[int]:
        """Baseline warm-up, then uniform integers in ``[min_demand, max_demand]``."""
        rng = rng or random.Random()
        low = max(0, int(min_demand))
        high = max(low, int(max_demand))
        return [
            BASELINE_DEMAND if week <= WARMUP_ROUNDS else rng.randint(low, high)
            for week in range(1, num_rounds + 1)
        ]

    @staticmethod
    def generate_custom(num_rounds: int, custom_demand: Optional[Sequence[Any]] = None) -> List[int]:
        """Use the supplied values; the last one repeats past the end of the list."""
        values = [_safe_int(value, 0) for value in (custom_demand or [])]
        if not values:
            return [BASELINE_DEMAND] * num_rounds
        return [
            values[week - 1] if week - 1 < len(values) else values[-1]
            for week in range(1, num_rounds + 1)
        ]

    @classmethod
    def generate(
        cls,
        pattern_type: Any,
        num_rounds: int,
        custom_demand: Optional[Sequence[Any]] = None,
        rng: Optional[random.Random] = None,
        **kwargs,
    ) -> List[int]:
        """Generate the full schedule for the given pattern selector."""
        try:
            num_rounds = int(num_rounds)
        except (TypeError, ValueError):
            return []
        if num_rounds <= 0:
            return []

        pattern = normalize_pattern_type(pattern_type)
        if pattern == DemandPatternType.STABLE:
            return cls.generate_stable(num_rounds)
        if pattern == DemandPatternType.INCREASING:
            return cls.generate_increasing(num_rounds)
        if pattern == DemandPatternType.RANDOM:
            return cls.generate_random(num_rounds, rng=rng, **kwargs)
        return cls.generate_custom(num_rounds, custom_demand)


def describe_pattern(pattern_type: Any, custom_demand: Optional[Sequence[Any]] = None) -> Dict[str, Any]:
    """Return a normalized, JSON friendly description of a pattern selection."""
    pattern = normalize_pattern_type(pattern_type)
    description: Dict[str, Any] = {"type": pattern.value}
    if pattern == DemandPatternType.RANDOM:
        description["params"] = DEFAULT_RANDOM_PARAMS.copy()
    elif pattern == DemandPatternType.CUSTOM:
        description["params"] = {"custom_demand": [_safe_int(v, 0) for v in (custom_demand or [])]}
    else:
        description["params"] = {}
    return description
