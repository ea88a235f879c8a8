"""
预订访问策略
所有状态转换前统一调用 can_mutate(actor, booking, field)
"""
import logging
from typing import Any, Callable, Dict, Protocol

from app.models.ontology import UserRole
from core.errors import AuthorizationError

logger = logging.getLogger(__name__)


class Actor(Protocol):
    id: int
    role: Any


class Owned(Protocol):
    user_id: Any


# 字段 / 操作
READ = "read"
STATUS = "status"
STATUS_OVERRIDE = "status_override"
ID_VERIFIED = "id_verified"
ID_PROOF = "id_proof"
PAYMENT_STATUS = "payment_status"
PAYMENT = "payment"
CANCEL = "cancel"


def is_admin(actor: Actor) -> bool:
    role = getattr(actor, "role", None)
    return role == UserRole.ADMIN or role == UserRole.ADMIN.value


def is_owner(actor: Actor, record: Owned) -> bool:
    return record.user_id is not None and record.user_id == actor.id


def _owner_or_admin(actor: Actor, record: Owned) -> bool:
    return is_admin(actor) or is_owner(actor, record)


def _admin_only(actor: Actor, record: Owned) -> bool:
    return is_admin(actor)


def _owner_only(actor: Actor, record: Owned) -> bool:
    # 管理员不能持有预订，也不能代替用户付款或上传证件
    return not is_admin(actor) and is_owner(actor, record)


_RULES: Dict[str, Callable[[Actor, Owned], bool]] = {
    READ: _owner_or_admin,
    STATUS: _owner_or_admin,
    CANCEL: _owner_or_admin,
    STATUS_OVERRIDE: _admin_only,
    ID_VERIFIED: _admin_only,
    ID_PROOF: _owner_only,
    PAYMENT_STATUS: _owner_only,
    PAYMENT: _owner_only,
}


def can_mutate(actor: Actor, record: Owned, field: str) -> bool:
    """actor 是否可以对 record 执行 field 对应的操作；未知字段一律拒绝"""
    rule = _RULES.get(field)
    if rule is None:
        return False
    return rule(actor, record)


def ensure_can_mutate(actor: Actor, record: Owned, field: str) -> None:
    """
    校验权限

    Raises:
        AuthorizationError: 无权限
    """
    if not can_mutate(actor, record, field):
        logger.warning(
            f"Access denied: actor={getattr(actor, 'id', None)} field={field} "
            f"record={getattr(record, 'id', None)}"
        )
        raise AuthorizationError(
            "Access denied",
            context={"field": field, "record_id": getattr(record, "id", None)},
        )
