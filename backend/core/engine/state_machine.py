"""
core/engine/state_machine.py

状态机 - 无状态的转换表校验
实体的当前状态存于数据库，状态机只回答 "from -> to 是否合法"
"""
from typing import Dict, List, Any, Optional, Callable, Iterable
from dataclasses import dataclass, field
import logging

from core.errors import ConflictError, ValidationError

logger = logging.getLogger(__name__)


@dataclass
class StateTransition:
    """
    状态转换定义

    Attributes:
        from_state: 源状态
        to_state: 目标状态
        condition: 可选的守卫条件，接收上下文字典
        rejection: 守卫条件不满足时返回给调用方的说明
    """

    from_state: str
    to_state: str
    condition: Optional[Callable[[Dict[str, Any]], bool]] = None
    rejection: str = ""

    def is_allowed(self, context: Dict[str, Any]) -> bool:
        if self.condition is None:
            return True
        return bool(self.condition(context))


@dataclass
class StateMachineConfig:
    """
    状态机配置

    Attributes:
        name: 实体名称（用于日志和错误信息）
        states: 全部合法状态
        transitions: 转换列表
        final_states: 终态，不允许任何转出
    """

    name: str
    states: List[str]
    transitions: List[StateTransition]
    final_states: List[str] = field(default_factory=list)


class StateMachine:
    """
    状态机

    Example:
        >>> machine = StateMachine(StateMachineConfig(
        ...     name="Booking",
        ...     states=["confirmed", "cancelled"],
        ...     transitions=[StateTransition("confirmed", "cancelled")],
        ...     final_states=["cancelled"],
        ... ))
        >>> machine.is_valid_transition("confirmed", "cancelled")
        True
    """

    def __init__(self, config: StateMachineConfig):
        self._config = config
        self._transition_map: Dict[str, Dict[str, StateTransition]] = {}
        for t in config.transitions:
            self._transition_map.setdefault(t.from_state, {})[t.to_state] = t

    @property
    def name(self) -> str:
        return self._config.name

    @property
    def states(self) -> List[str]:
        return list(self._config.states)

    @property
    def final_states(self) -> List[str]:
        return list(self._config.final_states)

    def targets(self, from_state: str) -> Iterable[str]:
        """某状态下可到达的目标状态"""
        return self._transition_map.get(from_state, {}).keys()

    def is_valid_transition(self, from_state: str, to_state: str) -> bool:
        """仅检查转换表，不评估守卫条件"""
        return to_state in self._transition_map.get(from_state, {})

    def check_transition(self, from_state: str, to_state: str,
                         context: Optional[Dict[str, Any]] = None) -> None:
        """
        校验转换，不合法时抛出异常

        Raises:
            ValidationError: 目标状态不在状态集合内
            ConflictError: 终态、转换表外的转换、或守卫条件不满足
        """
        if to_state not in self._config.states:
            raise ValidationError(f"Invalid {self.name.lower()} value: {to_state}")

        if from_state in self._config.final_states:
            logger.warning(f"{self.name}: rejected transition out of final state {from_state}")
            raise ConflictError(
                f"{self.name} is {from_state} and cannot be changed",
                context={"from": from_state, "to": to_state},
            )

        if not self.is_valid_transition(from_state, to_state):
            logger.warning(f"{self.name}: invalid transition {from_state} -> {to_state}")
            raise ConflictError(
                f"Cannot change {self.name.lower()} from {from_state} to {to_state}",
                context={"from": from_state, "to": to_state,
                         "allowed": sorted(self.targets(from_state))},
            )

        transition = self._transition_map[from_state][to_state]

        if not transition.is_allowed(context or {}):
            raise ConflictError(
                transition.rejection or f"Transition {from_state} -> {to_state} is not allowed",
                context={"from": from_state, "to": to_state},
            )


__all__ = [
    "StateTransition",
    "StateMachineConfig",
    "StateMachine",
]
