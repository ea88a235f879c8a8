"""
站内通知服务
写入 Notification 并按角色过滤可见范围；已读状态按接收人记录
"""
from typing import List, Optional
import logging

from sqlalchemy import and_, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.models.ontology import Notification, NotificationReceipt, NotificationRole, User
from app.models.schemas import NotificationResponse
from core.errors import AuthorizationError, NotFoundError, DependencyError

logger = logging.getLogger(__name__)


class NotificationService:
    """通知服务"""

    def __init__(self, db: Session):
        self.db = db

    def notify(self, title: str, message: str, user_id: Optional[int] = None,
               role: NotificationRole = NotificationRole.USER) -> Notification:
        """创建通知；user_id 为空表示发给该角色的所有人"""
        notification = Notification(
            user_id=user_id,
            title=title,
            message=message,
            role=role,
        )
        self.db.add(notification)
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to save notification '{title}': {e}")
            raise DependencyError("Failed to save notification") from e
        self.db.refresh(notification)
        return notification

    def _visible_filter(self, actor: User):
        # role=all 对所有人可见；其余只对同角色可见，且要么是广播要么是本人
        return or_(
            Notification.role == NotificationRole.ALL,
            and_(
                Notification.role == NotificationRole(actor.role.value),
                or_(Notification.user_id.is_(None), Notification.user_id == actor.id),
            ),
        )

    def list_for(self, actor: User) -> List[NotificationResponse]:
        """当前用户可见的通知（最新在前），read 为该用户自己的已读状态"""
        rows = self.db.query(Notification, NotificationReceipt.id).outerjoin(
            NotificationReceipt,
            and_(NotificationReceipt.notification_id == Notification.id,
                 NotificationReceipt.user_id == actor.id),
        ).filter(
            self._visible_filter(actor)
        ).order_by(Notification.created_at.desc(), Notification.id.desc()).all()
        return [_view(notification, receipt_id is not None) for notification, receipt_id in rows]

    def mark_read(self, notification_id: int, actor: User) -> NotificationResponse:
        """为当前用户写入已读回执，重复标记无副作用"""
        notification = self.db.query(Notification).filter(
            Notification.id == notification_id
        ).first()
        if not notification:
            raise NotFoundError("Notification not found",
                                context={"notification_id": notification_id})

        visible = self.db.query(Notification.id).filter(
            Notification.id == notification_id, self._visible_filter(actor)
        ).first()
        if not visible:
            raise AuthorizationError("Access denied",
                                     context={"notification_id": notification_id})

        receipt = self.db.query(NotificationReceipt).filter(
            NotificationReceipt.notification_id == notification_id,
            NotificationReceipt.user_id == actor.id,
        ).first()
        if receipt is None:
            self.db.add(NotificationReceipt(notification_id=notification_id, user_id=actor.id))
            try:
                self.db.commit()
            except SQLAlchemyError as e:
                self.db.rollback()
                logger.error(f"Failed to save read receipt for notification {notification_id}: {e}")
                raise DependencyError("Failed to save notification") from e
        return _view(notification, True)


def _view(notification: Notification, read: bool) -> NotificationResponse:
    return NotificationResponse(
        id=notification.id,
        user_id=notification.user_id,
        title=notification.title,
        message=notification.message,
        role=notification.role,
        read=read,
        created_at=notification.created_at,
    )
