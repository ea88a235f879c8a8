"""
core/engine - 核心引擎模块

- event_bus: 事件总线（发布/订阅）
- state_machine: 状态机（转换表校验）

使用方式:
    >>> from core.engine import event_bus, Event
    >>> from core.engine import StateMachine, StateMachineConfig, StateTransition
"""

# 事件总线
from core.engine.event_bus import (
    EventHandler,
    Event,
    PublishResult,
    EventBus,
    event_bus,
)

# 状态机
from core.engine.state_machine import (
    StateTransition,
    StateMachineConfig,
    StateMachine,
)

__all__ = [
    # 事件总线
    "EventHandler",
    "Event",
    "PublishResult",
    "EventBus",
    "event_bus",
    # 状态机
    "StateTransition",
    "StateMachineConfig",
    "StateMachine",
]
