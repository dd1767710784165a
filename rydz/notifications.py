# rydz/notifications.py
import logging
from typing import List, Optional

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from . import models as m
from .errors import NotFound, Unauthorized, handle_action_error
from .schemas import ActionResult, NotificationRead, NotificationResult

log = logging.getLogger(__name__)


def create_notification(
    session: Session,
    user_id: Optional[int],
    title: str,
    message: str,
    type: m.NotificationType = m.NotificationType.INFO,
    link: Optional[str] = None,
) -> NotificationResult:
    """
    Record a notification for a user in its own commit.

    Never raises on data-store errors; callers treat the notification as a
    side effect of an action that has already been committed.
    """
    if not user_id:
        log.error("[Action: createNotification] Error: No user_id provided.")
        return NotificationResult(success=False, message="User ID is required to create a notification.")

    note = m.Notification(
        user_id=user_id,
        title=title,
        message=message,
        type=type,
        link=link or "",
    )
    try:
        session.add(note)
        session.commit()
        session.refresh(note)
    except SQLAlchemyError as e:
        session.rollback()
        log.exception("[Action: createNotification] Error for user %s", user_id)
        return NotificationResult(success=False, message=f"Failed to create notification: {e}")

    log.info("[Action: createNotification] Created notification %s for user %s.", note.id, user_id)
    return NotificationResult(success=True, message="Notification created.", notification_id=note.id)


def notify(session: Session, user_id: Optional[int], title: str, message: str,
           type: m.NotificationType, link: Optional[str] = None) -> None:
    """Fire-and-forget wrapper: nothing raised here reaches the caller."""
    try:
        result = create_notification(session, user_id, title, message, type, link)
    except Exception:
        log.exception("Notification to user %s failed; ignoring", user_id)
        return
    if not result.success:
        log.warning("Notification to user %s not recorded: %s", user_id, result.message)


def get_notifications(session: Session, user_id: int) -> ActionResult:
    try:
        rows = session.exec(
            select(m.Notification)
            .where(m.Notification.user_id == user_id)
            .order_by(m.Notification.created_at.desc(), m.Notification.id.desc())
        ).all()
        notes: List[NotificationRead] = [NotificationRead.model_validate(n) for n in rows]
        return ActionResult(success=True, message=f"{len(notes)} notifications.", data=notes)
    except Exception as e:
        return handle_action_error(e, "getNotifications")


def mark_notification_as_read(session: Session, user_id: int, notification_id: int) -> ActionResult:
    try:
        note = session.get(m.Notification, notification_id)
        if not note:
            raise NotFound("Notification not found.")
        if note.user_id != user_id:
            raise Unauthorized("You can only update your own notifications.")
        note.read = True
        session.add(note)
        session.commit()
        return ActionResult(success=True, message="Notification marked as read.")
    except Exception as e:
        session.rollback()
        return handle_action_error(e, "markNotificationAsRead")


def mark_all_notifications_as_read(session: Session, user_id: int) -> ActionResult:
    try:
        result = session.exec(
            update(m.Notification)
            .where(m.Notification.user_id == user_id)
            .where(m.Notification.read == False)  # noqa: E712
            .values(read=True)
        )
        count = result.rowcount or 0
        session.commit()
        if count == 0:
            return ActionResult(success=True, message="No unread notifications.")
        return ActionResult(success=True, message=f"Marked {count} notifications as read.")
    except Exception as e:
        session.rollback()
        return handle_action_error(e, "markAllNotificationsAsRead")
