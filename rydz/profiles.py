# rydz/profiles.py
"""
Read helpers over the user table and the relation tables hanging off it.

The parent's approved/declined driver lists and the parent/student links are
stored as rows; these helpers project them back into the shapes the rest of
the app talks about (``managed_student_ids``, ``approved_drivers`` map, ...).
"""
from typing import Dict, Iterable, List, Optional

from sqlmodel import Session, select

from . import models as m
from .errors import NotFound, Unauthorized
from .schemas import UserDisplayInfo, UserRead


def get_user(session: Session, user_id: int, for_update: bool = False) -> Optional[m.User]:
    if for_update:
        return session.exec(
            select(m.User).where(m.User.id == user_id).with_for_update()
        ).one_or_none()
    return session.get(m.User, user_id)


def find_user_by_email(session: Session, email: str) -> Optional[m.User]:
    normalized = email.strip().lower()
    return session.exec(select(m.User).where(m.User.email == normalized)).first()


def require_parent(session: Session, parent_user_id: int, for_update: bool = False) -> m.User:
    parent = get_user(session, parent_user_id, for_update=for_update)
    if not parent:
        raise NotFound("Parent profile not found.")
    if parent.role != m.UserRole.PARENT:
        raise Unauthorized("Unauthorized: This action is only available to parents.")
    return parent


def fetch_users(session: Session, ids: Iterable[int]) -> Dict[int, m.User]:
    """Batched multi-get; ids with no matching row are simply absent."""
    wanted = sorted(set(ids))
    if not wanted:
        return {}
    rows = session.exec(select(m.User).where(m.User.id.in_(wanted))).all()
    return {u.id: u for u in rows}


def managed_student_ids(session: Session, parent_id: int) -> List[int]:
    return list(session.exec(
        select(m.ParentStudentLink.student_id)
        .where(m.ParentStudentLink.parent_id == parent_id)
        .order_by(m.ParentStudentLink.id)
    ).all())


def associated_parent_ids(session: Session, student_id: int) -> List[int]:
    return list(session.exec(
        select(m.ParentStudentLink.parent_id)
        .where(m.ParentStudentLink.student_id == student_id)
        .order_by(m.ParentStudentLink.id)
    ).all())


def approved_drivers(session: Session, parent_id: int) -> Dict[int, List[int]]:
    out: Dict[int, List[int]] = {}
    rows = session.exec(
        select(m.ApprovedDriver)
        .where(m.ApprovedDriver.parent_id == parent_id)
        .order_by(m.ApprovedDriver.id)
    ).all()
    for row in rows:
        out.setdefault(row.driver_id, []).append(row.student_id)
    return out


def declined_driver_ids(session: Session, parent_id: int) -> List[int]:
    return list(session.exec(
        select(m.DeclinedDriver.driver_id)
        .where(m.DeclinedDriver.parent_id == parent_id)
        .order_by(m.DeclinedDriver.id)
    ).all())


def is_driver_approved(session: Session, parent_id: int, driver_id: int, student_id: int) -> bool:
    row = session.exec(
        select(m.ApprovedDriver.id).where(
            (m.ApprovedDriver.parent_id == parent_id) &
            (m.ApprovedDriver.driver_id == driver_id) &
            (m.ApprovedDriver.student_id == student_id)
        )
    ).first()
    return row is not None


def is_driver_declined(session: Session, parent_id: int, driver_id: int) -> bool:
    row = session.exec(
        select(m.DeclinedDriver.id).where(
            (m.DeclinedDriver.parent_id == parent_id) &
            (m.DeclinedDriver.driver_id == driver_id)
        )
    ).first()
    return row is not None


def display_info(user: m.User) -> UserDisplayInfo:
    return UserDisplayInfo(
        uid=user.id,
        full_name=user.name,
        email=user.email,
        avatar_url=user.avatar_url,
    )


def user_read(session: Session, user: m.User) -> UserRead:
    base = UserRead.model_validate(user)
    return base.model_copy(update={
        "managed_student_ids": managed_student_ids(session, user.id),
        "associated_parent_ids": associated_parent_ids(session, user.id),
        "approved_drivers": approved_drivers(session, user.id),
        "declined_driver_ids": declined_driver_ids(session, user.id),
    })
