# rydz/rydz_workflow.py
"""
Passenger side of an active ryd: creating the ryd, asking to join it, the
driver's decision on a join request and passengers cancelling their spot.

Join requests consult the parents' driver lists: a driver already approved
for the student skips the parental step, a declined driver is refused.
"""
import logging
from typing import List, Optional

from sqlmodel import Session, select

from . import models as m
from . import profiles
from .errors import NotFound, StaleRequest, Unauthorized, ValidationError, handle_action_error
from .notifications import notify
from .schemas import ActionResult, ActiveRydCreate, ActiveRydRead, ManifestEntryRead

log = logging.getLogger(__name__)

S = m.PassengerManifestStatus

JOINABLE_RYD_STATUSES = {m.ActiveRydStatus.PLANNING, m.ActiveRydStatus.AWAITING_PASSENGERS}

SEATED_STATUSES = {S.CONFIRMED_BY_DRIVER, S.AWAITING_PICKUP, S.ON_BOARD}

CANCELLABLE_PASSENGER_STATUSES = {
    S.PENDING_DRIVER_APPROVAL,
    S.PENDING_PARENT_APPROVAL,
    S.CONFIRMED_BY_DRIVER,
    S.AWAITING_PICKUP,
}

NON_CANCELLABLE_RYD_STATUSES = {
    m.ActiveRydStatus.COMPLETED,
    m.ActiveRydStatus.CANCELLED_BY_DRIVER,
    m.ActiveRydStatus.CANCELLED_BY_SYSTEM,
    m.ActiveRydStatus.IN_PROGRESS_ROUTE,
    m.ActiveRydStatus.IN_PROGRESS_PICKUP,
}


def _pretty(status) -> str:
    return status.value.replace("_", " ")


def manifest(session: Session, ryd_id: int) -> List[m.ManifestEntry]:
    return list(session.exec(
        select(m.ManifestEntry)
        .where(m.ManifestEntry.ryd_id == ryd_id)
        .order_by(m.ManifestEntry.requested_at, m.ManifestEntry.id)
    ).all())


def active_ryd_read(session: Session, ryd: m.ActiveRyd) -> ActiveRydRead:
    entries = manifest(session, ryd.id)
    base = ActiveRydRead.model_validate(ryd)
    return base.model_copy(update={
        "passenger_manifest": [ManifestEntryRead.model_validate(e) for e in entries],
        "uids_pending_parental_approval": [
            e.user_id for e in entries if e.status == S.PENDING_PARENT_APPROVAL
        ],
    })


def _lock_ryd(session: Session, ryd_id: int) -> m.ActiveRyd:
    ryd = session.exec(
        select(m.ActiveRyd).where(m.ActiveRyd.id == ryd_id).with_for_update()
    ).one_or_none()
    if not ryd:
        raise NotFound("The selected ryd does not exist.")
    return ryd


def _can_act_for(session: Session, actor: m.User, passenger_id: int) -> bool:
    if actor.id == passenger_id:
        return True
    return (
        actor.role == m.UserRole.PARENT
        and passenger_id in profiles.managed_student_ids(session, actor.id)
    )


# ---------------- driver creates a ryd ----------------

def create_active_ryd(session: Session, driver_id: int, payload: ActiveRydCreate) -> ActionResult:
    try:
        driver = profiles.get_user(session, driver_id)
        if not driver:
            raise NotFound("Driver profile not found.")
        if not driver.can_drive:
            raise Unauthorized("Set 'I can drive' in your profile before offering a ryd.")

        ryd = m.ActiveRyd(driver_id=driver.id, **payload.model_dump())
        session.add(ryd)
        session.commit()
        session.refresh(ryd)
        log.info("Driver %s created active ryd %s", driver.id, ryd.id)
        return ActionResult(success=True, message="Ryd created.", data=active_ryd_read(session, ryd))
    except Exception as e:
        session.rollback()
        return handle_action_error(e, "createActiveRyd")


def get_active_ryd(session: Session, ryd_id: int) -> ActionResult:
    try:
        ryd = session.get(m.ActiveRyd, ryd_id)
        if not ryd:
            raise NotFound("Ryd not found.")
        return ActionResult(success=True, message="Ryd found.", data=active_ryd_read(session, ryd))
    except Exception as e:
        return handle_action_error(e, "getActiveRyd")


# ---------------- passenger asks to join ----------------

def request_to_join(
    session: Session,
    active_ryd_id: int,
    passenger_user_id: int,
    requested_by_user_id: int,
) -> ActionResult:
    if not active_ryd_id or not passenger_user_id or not requested_by_user_id:
        return ActionResult(success=False, message="Missing required IDs.", kind=ValidationError.kind)

    try:
        requester = profiles.get_user(session, requested_by_user_id)
        if not requester:
            raise NotFound("Requester profile not found.")
        passenger = profiles.get_user(session, passenger_user_id)
        if not passenger:
            raise NotFound("Passenger profile not found.")
        if requester.id != passenger.id:
            if requester.role != m.UserRole.PARENT:
                raise Unauthorized("Only parents can request for other users.")
            if not _can_act_for(session, requester, passenger.id):
                raise Unauthorized("You are not authorized to request a ryd for this student.")

        ryd = _lock_ryd(session, active_ryd_id)
        if ryd.status not in JOINABLE_RYD_STATUSES:
            raise ValidationError(
                f"This ryd is no longer accepting new passengers (Status: {_pretty(ryd.status)})."
            )
        if passenger.id == ryd.driver_id:
            raise ValidationError("You cannot join your own ryd as a passenger.")

        entries = manifest(session, ryd.id)
        live = [e for e in entries if e.status not in m.INACTIVE_PASSENGER_STATUSES]
        if len(live) >= ryd.passenger_capacity:
            raise ValidationError("This ryd is already full.")
        if any(e.user_id == passenger.id for e in live):
            raise ValidationError(f"{passenger.name} is already on this ryd or has a pending request.")

        status = S.PENDING_DRIVER_APPROVAL
        parents_to_notify: List[int] = []
        if passenger.role == m.UserRole.STUDENT:
            parent_ids = profiles.associated_parent_ids(session, passenger.id)
            if any(profiles.is_driver_declined(session, pid, ryd.driver_id) for pid in parent_ids):
                raise Unauthorized("A parent of this student has declined this driver.")
            approved = any(
                profiles.is_driver_approved(session, pid, ryd.driver_id, passenger.id)
                for pid in parent_ids
            )
            if parent_ids and not approved:
                status = S.PENDING_PARENT_APPROVAL
                parents_to_notify = parent_ids

        now = m.utcnow()
        session.add(m.ManifestEntry(
            ryd_id=ryd.id,
            user_id=passenger.id,
            pickup_address=passenger.pickup_address,
            destination_address=ryd.final_destination_address or "Event Destination",
            status=status,
            requested_at=now,
            updated_at=now,
        ))
        if ryd.status == m.ActiveRydStatus.AWAITING_PASSENGERS:
            ryd.status = m.ActiveRydStatus.PLANNING
        passenger_name, driver_id = passenger.name, ryd.driver_id
        ryd.updated_at = now
        session.add(ryd)
        session.commit()
    except Exception as e:
        session.rollback()
        return handle_action_error(e, "requestToJoinActiveRyd")

    log.info("Passenger %s requested ryd %s -> %s", passenger_user_id, active_ryd_id, status.value)

    if parents_to_notify:
        for parent_id in parents_to_notify:
            notify(
                session,
                parent_id,
                "Ryd Approval Required",
                f"Your approval is required for {passenger_name} to join a ryd.",
                m.NotificationType.WARNING,
                "/parent/approvals",
            )
        message = (
            "The driver for this ryd has not been approved yet. "
            "A request has been sent to the student's parent for approval."
        )
    else:
        notify(
            session,
            driver_id,
            "New Ryd Request",
            f"{passenger_name} has requested to join your ryd.",
            m.NotificationType.INFO,
            f"/rydz/tracking/{active_ryd_id}",
        )
        message = f"{passenger_name}'s request to join the ryd has been sent to the driver for approval."

    return ActionResult(success=True, message=message, data={"ryd_id": active_ryd_id, "status": status.value})


# ---------------- driver decides on a join request ----------------

def manage_passenger_join_request(
    session: Session,
    active_ryd_id: int,
    passenger_user_id: int,
    acting_user_id: int,
    new_status,
) -> ActionResult:
    try:
        try:
            new_status = S(new_status)
        except ValueError:
            raise ValidationError("Invalid status update.")
        if new_status not in (S.CONFIRMED_BY_DRIVER, S.REJECTED_BY_DRIVER):
            raise ValidationError("Invalid status update.")

        driver = profiles.get_user(session, acting_user_id)
        if not driver:
            raise NotFound("Acting user/driver profile not found.")
        ryd = _lock_ryd(session, active_ryd_id)
        if ryd.driver_id != driver.id:
            raise Unauthorized("Unauthorized: Only the driver can manage join requests.")

        entries = manifest(session, ryd.id)
        entry = next(
            (e for e in entries if e.user_id == passenger_user_id and e.status == S.PENDING_DRIVER_APPROVAL),
            None,
        )
        if entry is None:
            raise StaleRequest("Passenger request not found or not in pending state.")

        passenger = profiles.get_user(session, passenger_user_id)
        passenger_name = passenger.name if passenger else f"User {passenger_user_id}"

        if new_status == S.CONFIRMED_BY_DRIVER:
            seated = sum(1 for e in entries if e.status in SEATED_STATUSES)
            if seated >= ryd.passenger_capacity:
                raise ValidationError(f"Cannot approve {passenger_name}: Ryd is already full.")

        now = m.utcnow()
        entry.status = new_status
        entry.updated_at = now
        ryd.updated_at = now
        if new_status == S.CONFIRMED_BY_DRIVER:
            ryd.status = m.ActiveRydStatus.PLANNING
        driver_name, event_name = driver.name, ryd.event_name
        session.add(entry)
        session.add(ryd)
        session.commit()
    except Exception as e:
        session.rollback()
        return handle_action_error(e, "managePassengerJoinRequest")

    verb = "approved" if new_status == S.CONFIRMED_BY_DRIVER else "rejected"
    notify(
        session,
        passenger_user_id,
        f"Your Ryd Request was {verb}",
        f"{driver_name} has {verb} your request to join the ryd for \"{event_name or 'the ryd'}\".",
        m.NotificationType.SUCCESS if verb == "approved" else m.NotificationType.ERROR,
        f"/rydz/tracking/{active_ryd_id}",
    )
    return ActionResult(success=True, message=f"Passenger {passenger_name}'s request has been {verb}.")


# ---------------- passenger gives up a spot ----------------

def cancel_passenger_spot(
    session: Session,
    active_ryd_id: int,
    passenger_user_id: int,
    cancelling_user_id: int,
) -> ActionResult:
    if not active_ryd_id or not passenger_user_id or not cancelling_user_id:
        return ActionResult(success=False, message="Missing required parameters.", kind=ValidationError.kind)

    try:
        actor = profiles.get_user(session, cancelling_user_id)
        if not actor:
            raise NotFound("Your user profile could not be found.")
        if not _can_act_for(session, actor, passenger_user_id):
            raise Unauthorized("Unauthorized: You may only cancel for yourself or for a student you manage.")

        ryd = _lock_ryd(session, active_ryd_id)
        entries = manifest(session, ryd.id)
        entry: Optional[m.ManifestEntry] = next(
            (e for e in reversed(entries) if e.user_id == passenger_user_id), None
        )
        if entry is None:
            raise NotFound("Passenger not found on this ryd.")

        passenger = profiles.get_user(session, passenger_user_id)
        passenger_name = passenger.name if passenger else f"User {passenger_user_id}"

        if entry.status not in CANCELLABLE_PASSENGER_STATUSES:
            raise StaleRequest(
                f"{passenger_name} cannot cancel at this stage (Current Status: {_pretty(entry.status)})."
            )
        if ryd.status in NON_CANCELLABLE_RYD_STATUSES:
            raise ValidationError(
                f"This ryd cannot be cancelled by a passenger at this stage (Ryd Status: {_pretty(ryd.status)})."
            )

        now = m.utcnow()
        entry.status = S.CANCELLED_BY_PASSENGER
        entry.updated_at = now
        session.add(entry)

        remaining = [e for e in entries if e.status not in m.INACTIVE_PASSENGER_STATUSES]
        if not remaining and ryd.status == m.ActiveRydStatus.PLANNING:
            ryd.status = m.ActiveRydStatus.AWAITING_PASSENGERS
        driver_id, event_name = ryd.driver_id, ryd.event_name
        ryd.updated_at = now
        session.add(ryd)
        session.commit()
    except Exception as e:
        session.rollback()
        return handle_action_error(e, "cancelPassengerSpot")

    notify(
        session,
        driver_id,
        "Passenger Cancelled",
        f"{passenger_name} has cancelled their spot for the ryd to \"{event_name or 'your ryd'}\".",
        m.NotificationType.INFO,
        f"/rydz/tracking/{active_ryd_id}",
    )
    return ActionResult(success=True, message=f"Spot for {passenger_name} on the ryd has been successfully cancelled.")
