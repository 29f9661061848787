from dataclasses import dataclass, field
from decimal import Decimal
import numbers
from typing import Any, Dict, List, Optional, Sequence, Union

from ..models.qc_models import QCStatusEnum, WestgardRuleEnum
from .domain import QCDataPoint

# plain numbers or measurements carrying a ``value``
HistoryItem = Union[numbers.Real, Decimal, QCDataPoint]

RULE_MESSAGES = {
    WestgardRuleEnum.RULE_13S: "Control exceeds 3 standard deviations",
    WestgardRuleEnum.RULE_22S: "Two consecutive controls exceed 2SD on the same side",
    WestgardRuleEnum.RULE_R4S: "Difference between consecutive controls exceeds 4SD",
    WestgardRuleEnum.RULE_41S: "Four consecutive controls exceed 1SD on the same side",
    WestgardRuleEnum.RULE_10X: "Ten consecutive controls on the same side of the mean",
    WestgardRuleEnum.RULE_12S: "Control exceeds 2 standard deviations (warning rule)",
}


@dataclass(frozen=True)
class WestgardResult:
    """Classification of a single control measurement"""
    status: QCStatusEnum
    rules: List[str] = field(default_factory=list)
    message: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "rules": list(self.rules),
            "message": self.message,
        }


ACCEPTED = WestgardResult(status=QCStatusEnum.OK)


def _value_of(item: HistoryItem) -> float:
    if isinstance(item, (numbers.Real, Decimal)):
        return float(item)
    return float(item.value)


def _sign(z: float) -> int:
    return (z > 0) - (z < 0)


class WestgardRuleEngine:
    """Westgard multi-rule evaluator for one control configuration.

    Rules are checked in a fixed priority order and the first rejection rule
    that fires decides the result. ``1-2s`` is only reported when no rejection
    rule fired. The engine holds no history; callers pass the prior points,
    sorted ascending by date and excluding the point being evaluated.
    """

    REJECTION_RULES = (
        WestgardRuleEnum.RULE_13S,
        WestgardRuleEnum.RULE_22S,
        WestgardRuleEnum.RULE_R4S,
        WestgardRuleEnum.RULE_41S,
        WestgardRuleEnum.RULE_10X,
    )

    def __init__(self, mean: float, sd: float):
        self.mean = mean
        self.sd = sd

    def z_score(self, value: float) -> Optional[float]:
        if self.sd == 0:
            return None
        return (value - self.mean) / self.sd

    def evaluate(self, current_value: float, prior_history: Sequence[HistoryItem]) -> WestgardResult:
        """Classify ``current_value`` given the points measured before it"""
        if self.sd == 0:
            return ACCEPTED

        cur_z, prior_z = self._z_scores(current_value, prior_history)

        for rule in self.REJECTION_RULES:
            if self._check(rule, cur_z, prior_z):
                return WestgardResult(
                    status=QCStatusEnum.ERROR,
                    rules=[rule.value],
                    message=RULE_MESSAGES[rule],
                )

        if self._check_12s(cur_z):
            return WestgardResult(
                status=QCStatusEnum.WARNING,
                rules=[WestgardRuleEnum.RULE_12S.value],
                message=RULE_MESSAGES[WestgardRuleEnum.RULE_12S],
            )

        return ACCEPTED

    def find_violations(self, current_value: float, prior_history: Sequence[HistoryItem]) -> List[str]:
        """Return every rule whose predicate holds, in priority order.

        Used for audit output only; classification always comes from
        :meth:`evaluate`. ``1-2s`` is listed only when no rejection rule holds.
        """
        if self.sd == 0:
            return []

        cur_z, prior_z = self._z_scores(current_value, prior_history)
        violations = [rule.value for rule in self.REJECTION_RULES if self._check(rule, cur_z, prior_z)]
        if not violations and self._check_12s(cur_z):
            violations.append(WestgardRuleEnum.RULE_12S.value)
        return violations

    def _z_scores(self, current_value: float, prior_history: Sequence[HistoryItem]):
        cur_z = (current_value - self.mean) / self.sd
        # no rule looks further back than 10x
        window = list(prior_history)[-9:]
        prior_z = [(_value_of(item) - self.mean) / self.sd for item in window]
        return cur_z, prior_z

    def _check(self, rule: WestgardRuleEnum, cur_z: float, prior_z: List[float]) -> bool:
        checks = {
            WestgardRuleEnum.RULE_13S: self._check_13s,
            WestgardRuleEnum.RULE_22S: self._check_22s,
            WestgardRuleEnum.RULE_R4S: self._check_r4s,
            WestgardRuleEnum.RULE_41S: self._check_41s,
            WestgardRuleEnum.RULE_10X: self._check_10x,
        }
        return checks[rule](cur_z, prior_z)

    @staticmethod
    def _prev_z(prior_z: List[float]) -> float:
        return prior_z[-1] if prior_z else 0.0

    def _check_13s(self, cur_z: float, prior_z: List[float]) -> bool:
        """1-3s: one control beyond 3SD"""
        return abs(cur_z) > 3

    def _check_22s(self, cur_z: float, prior_z: List[float]) -> bool:
        """2-2s: current and previous control beyond 2SD on the same side"""
        prev_z = self._prev_z(prior_z)
        return abs(cur_z) > 2 and abs(prev_z) > 2 and _sign(cur_z) == _sign(prev_z)

    def _check_r4s(self, cur_z: float, prior_z: List[float]) -> bool:
        """R-4s: range between consecutive controls exceeds 4SD"""
        if not prior_z:
            return False
        return abs(cur_z - prior_z[-1]) > 4

    def _check_41s(self, cur_z: float, prior_z: List[float]) -> bool:
        """4-1s: four consecutive controls beyond 1SD on the side of the current one"""
        if len(prior_z) < 3:
            return False
        side = _sign(cur_z)
        window = prior_z[-3:] + [cur_z]
        return all(abs(z) > 1 and _sign(z) == side for z in window)

    def _check_10x(self, cur_z: float, prior_z: List[float]) -> bool:
        """10x: ten consecutive controls on the same side of the mean"""
        if len(prior_z) < 9:
            return False
        side = _sign(cur_z)
        if side == 0:
            return False
        window = prior_z[-9:] + [cur_z]
        return all(_sign(z) == side for z in window)

    def _check_12s(self, cur_z: float) -> bool:
        return abs(cur_z) > 2


def evaluate(current_value: float, prior_history: Sequence[HistoryItem],
             mean: float, sd: float) -> WestgardResult:
    """Classify a control value against its prior history"""
    return WestgardRuleEngine(mean, sd).evaluate(current_value, prior_history)


def find_violations(current_value: float, prior_history: Sequence[HistoryItem],
                    mean: float, sd: float) -> List[str]:
    return WestgardRuleEngine(mean, sd).find_violations(current_value, prior_history)
