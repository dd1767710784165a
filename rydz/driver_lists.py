# rydz/driver_lists.py
"""
Driver List Manager.

Each parent keeps a permanent list of approved drivers (driver -> students the
driver may carry without asking) and a list of declined drivers. A driver is
never on both lists for the same parent: every write that puts a driver on
one list takes them off the other, and all such writes go through the
helpers in this module.
"""
import logging
from typing import Iterable, List

from sqlalchemy import delete
from sqlmodel import Session

from . import models as m
from . import profiles
from .errors import InvalidSelf, NotFound, Unauthorized, ValidationError, handle_action_error
from .schemas import ActionResult, DriverLookup

log = logging.getLogger(__name__)

LISTS = ("approved", "declined")


# ---------------- row-level primitives ----------------
# These never commit; callers own the unit of work.

def add_approved_students(session: Session, parent_id: int, driver_id: int, student_ids: Iterable[int]) -> None:
    existing = set(profiles.approved_drivers(session, parent_id).get(driver_id, []))
    for student_id in student_ids:
        if student_id in existing:
            continue
        session.add(m.ApprovedDriver(parent_id=parent_id, driver_id=driver_id, student_id=student_id))
        existing.add(student_id)
    clear_declined(session, parent_id, driver_id)


def replace_approved_students(session: Session, parent_id: int, driver_id: int, student_ids: Iterable[int]) -> None:
    clear_approved(session, parent_id, driver_id)
    # dedupe, keep caller order
    for student_id in dict.fromkeys(student_ids):
        session.add(m.ApprovedDriver(parent_id=parent_id, driver_id=driver_id, student_id=student_id))
    clear_declined(session, parent_id, driver_id)


def decline(session: Session, parent_id: int, driver_id: int) -> None:
    clear_approved(session, parent_id, driver_id)
    if not profiles.is_driver_declined(session, parent_id, driver_id):
        session.add(m.DeclinedDriver(parent_id=parent_id, driver_id=driver_id))


def clear_approved(session: Session, parent_id: int, driver_id: int) -> int:
    result = session.exec(
        delete(m.ApprovedDriver).where(
            (m.ApprovedDriver.parent_id == parent_id) &
            (m.ApprovedDriver.driver_id == driver_id)
        )
    )
    return result.rowcount or 0


def clear_declined(session: Session, parent_id: int, driver_id: int) -> int:
    result = session.exec(
        delete(m.DeclinedDriver).where(
            (m.DeclinedDriver.parent_id == parent_id) &
            (m.DeclinedDriver.driver_id == driver_id)
        )
    )
    return result.rowcount or 0


# ---------------- operations ----------------

def remove_from_list(session: Session, parent_user_id: int, driver_id: int, list_name: str) -> ActionResult:
    """Take a driver off one list. Does not touch the other list."""
    try:
        if not parent_user_id or not driver_id or list_name not in LISTS:
            raise ValidationError("Missing or invalid parameters.")
        parent = profiles.require_parent(session, parent_user_id, for_update=True)

        if list_name == "approved":
            removed = clear_approved(session, parent.id, driver_id)
        else:
            removed = clear_declined(session, parent.id, driver_id)
        session.commit()

        if not removed:
            return ActionResult(success=True, message=f"Driver was not on your {list_name} list.")
        log.info("Parent %s removed driver %s from %s list", parent.id, driver_id, list_name)
        return ActionResult(success=True, message=f"Driver removed from your {list_name} list.")
    except Exception as e:
        session.rollback()
        return handle_action_error(e, "removeFromList")


def update_driver_list(session: Session, parent_user_id: int, driver_id: int, list_name: str, action: str) -> ActionResult:
    if action == "remove":
        return remove_from_list(session, parent_user_id, driver_id, list_name)
    try:
        if action != "add" or list_name not in LISTS or not driver_id:
            raise ValidationError("Missing or invalid parameters.")
        parent = profiles.require_parent(session, parent_user_id, for_update=True)
        if driver_id == parent.id:
            raise InvalidSelf("You cannot add yourself to your own driver lists.")
        if not profiles.get_user(session, driver_id):
            raise NotFound("Driver profile not found.")

        if list_name == "declined":
            decline(session, parent.id, driver_id)
            message = "Driver added to your declined list."
        else:
            students = profiles.managed_student_ids(session, parent.id)
            if not students:
                raise ValidationError("You have no managed students to approve this driver for.")
            add_approved_students(session, parent.id, driver_id, students)
            message = "Driver added to your approved list for all of your students."
        session.commit()
        return ActionResult(success=True, message=message)
    except Exception as e:
        session.rollback()
        return handle_action_error(e, "updateDriverList")


def approve_driver_for_students(session: Session, parent_user_id: int, driver_email: str, student_ids: List[int]) -> ActionResult:
    """
    Approve the driver with ``driver_email`` for exactly ``student_ids``.

    Replaces whatever set of students the driver was approved for before, so
    the same call is used to edit an existing approval.
    """
    try:
        if not parent_user_id or not driver_email or not driver_email.strip():
            raise ValidationError("Parent and driver email are required.")
        if not student_ids:
            raise ValidationError("Please select at least one student to approve this driver for.")

        parent = profiles.require_parent(session, parent_user_id, for_update=True)
        managed = set(profiles.managed_student_ids(session, parent.id))
        foreign = [sid for sid in student_ids if sid not in managed]
        if foreign:
            raise Unauthorized("Unauthorized: You can only approve drivers for students you manage.")

        driver = profiles.find_user_by_email(session, driver_email)
        if not driver:
            raise NotFound(f"No user with email {driver_email.strip()} found.")
        if driver.id == parent.id:
            raise InvalidSelf("You cannot add yourself as an approved driver.")

        replace_approved_students(session, parent.id, driver.id, student_ids)
        session.commit()

        log.info("Parent %s approved driver %s for students %s", parent.id, driver.id, list(student_ids))
        return ActionResult(
            success=True,
            message=f"{driver.name} is now approved to drive {len(set(student_ids))} of your students.",
            data={"driver_id": driver.id, "student_ids": list(dict.fromkeys(student_ids))},
        )
    except Exception as e:
        session.rollback()
        return handle_action_error(e, "approveDriverForStudents")


def find_driver_by_email(session: Session, parent_user_id: int, email: str) -> ActionResult:
    try:
        if not email or not email.strip():
            raise ValidationError("Please enter a driver's email.")
        parent = profiles.require_parent(session, parent_user_id)
        driver = profiles.find_user_by_email(session, email)
        if not driver:
            raise NotFound(f"No user with email {email.strip()} found.")
        lookup = DriverLookup(
            driver=profiles.display_info(driver),
            approved_student_ids=profiles.approved_drivers(session, parent.id).get(driver.id, []),
        )
        return ActionResult(success=True, message="Driver found.", data=lookup)
    except Exception as e:
        return handle_action_error(e, "findDriverByEmail")
