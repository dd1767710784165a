# rydz/approvals.py
"""
Approval Decision Engine.

Resolves one ``pending_parent_approval`` manifest entry with a parent's
decision. The status change and the parent's driver-list change are written
in one unit of work; the driver notification goes out after commit and may
fail on its own.

    decision              manifest status            parent lists
    reject                rejected_by_parent         driver -> declined, approved rows dropped
    approve_once          pending_driver_approval    unchanged
    approve_permanently   pending_driver_approval    (driver, student) -> approved, driver off declined
"""
import logging

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from . import driver_lists
from . import models as m
from . import profiles
from .errors import NotFound, StaleRequest, Unauthorized, ValidationError, handle_action_error
from .notifications import notify
from .schemas import ActionResult, ApprovalDecision

log = logging.getLogger(__name__)

PENDING = m.PassengerManifestStatus.PENDING_PARENT_APPROVAL

TRANSITIONS = {
    ApprovalDecision.REJECT: m.PassengerManifestStatus.REJECTED_BY_PARENT,
    ApprovalDecision.APPROVE_ONCE: m.PassengerManifestStatus.PENDING_DRIVER_APPROVAL,
    ApprovalDecision.APPROVE_PERMANENTLY: m.PassengerManifestStatus.PENDING_DRIVER_APPROVAL,
}

MESSAGES = {
    ApprovalDecision.REJECT: "You have rejected this driver for this ryd.",
    ApprovalDecision.APPROVE_ONCE: "Driver approved for this ryd. The request has been sent to the driver.",
    ApprovalDecision.APPROVE_PERMANENTLY: (
        "Driver approved for this ryd and added to your permanent approved list."
    ),
}


def _parse_decision(decision) -> ApprovalDecision:
    try:
        return ApprovalDecision(decision)
    except ValueError:
        raise ValidationError("Invalid approval decision.")


def _pending_entry(session: Session, ryd_id: int, student_id: int) -> m.ManifestEntry:
    entry = session.exec(
        select(m.ManifestEntry)
        .where(m.ManifestEntry.ryd_id == ryd_id)
        .where(m.ManifestEntry.user_id == student_id)
        .where(m.ManifestEntry.status == PENDING)
        .with_for_update()
    ).first()
    if entry is None:
        raise StaleRequest("This approval request is no longer pending or could not be found.")
    return entry


def _forward_to_driver(session: Session, student_user_id: int, driver_id: int, ryd_id: int) -> None:
    # the decision is already committed; nothing here may fail it
    try:
        student = profiles.get_user(session, student_user_id)
        student_name = student.name if student else "A student"
    except SQLAlchemyError:
        log.exception("Could not load student %s for the driver notification", student_user_id)
        session.rollback()
        student_name = "A student"
    notify(
        session,
        driver_id,
        "Ryd Request Forwarded",
        f"{student_name}'s request to join your ryd was approved by their parent and is ready for your review.",
        m.NotificationType.INFO,
        f"/rydz/tracking/{ryd_id}",
    )


def decide_driver_approval(
    session: Session,
    parent_user_id: int,
    student_user_id: int,
    driver_id: int,
    active_ryd_id: int,
    decision,
) -> ActionResult:
    if not parent_user_id or not student_user_id or not driver_id or not active_ryd_id or not decision:
        return ActionResult(success=False, message="Missing required parameters.", kind=ValidationError.kind)

    try:
        choice = _parse_decision(decision)

        parent = profiles.get_user(session, parent_user_id, for_update=True)
        if not parent:
            raise NotFound("Parent profile not found.")
        if (
            parent.role != m.UserRole.PARENT
            or student_user_id not in profiles.managed_student_ids(session, parent.id)
        ):
            raise Unauthorized("Unauthorized: You are not registered as a parent for this student.")

        ryd = session.exec(
            select(m.ActiveRyd).where(m.ActiveRyd.id == active_ryd_id).with_for_update()
        ).one_or_none()
        if not ryd:
            raise NotFound("The associated ryd could not be found.")
        if ryd.driver_id != driver_id:
            raise ValidationError("The driver does not match the driver of this ryd.")

        entry = _pending_entry(session, ryd.id, student_user_id)
        new_status = TRANSITIONS[choice]
        now = m.utcnow()

        # Only one writer can move the entry out of the pending state.
        result = session.exec(
            update(m.ManifestEntry)
            .where(m.ManifestEntry.id == entry.id)
            .where(m.ManifestEntry.status == PENDING)
            .values(status=new_status, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise StaleRequest("This approval request is no longer pending or could not be found.")

        if choice == ApprovalDecision.REJECT:
            driver_lists.decline(session, parent.id, driver_id)
        elif choice == ApprovalDecision.APPROVE_PERMANENTLY:
            driver_lists.add_approved_students(session, parent.id, driver_id, [student_user_id])

        ryd.updated_at = now
        session.add(ryd)
        session.commit()
    except Exception as e:
        session.rollback()
        return handle_action_error(e, "decideDriverApproval")

    log.info(
        "Parent %s decided %s for student %s on ryd %s (driver %s)",
        parent_user_id, choice.value, student_user_id, active_ryd_id, driver_id,
    )

    if choice != ApprovalDecision.REJECT:
        _forward_to_driver(session, student_user_id, driver_id, active_ryd_id)

    return ActionResult(success=True, message=MESSAGES[choice], data={"new_status": new_status.value})
