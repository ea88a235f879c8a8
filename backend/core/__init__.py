"""
core - 领域无关的框架层

- engine: 事件总线、状态机
- errors: 领域错误类型

使用方式:
    >>> from core.engine import event_bus, StateMachine
    >>> from core.errors import ConflictError
"""
