# rydz/approvals_page.py
"""Read side of the parent approvals screen."""
import logging
from typing import List

from sqlmodel import Session, select

from . import models as m
from . import profiles
from .errors import handle_action_error
from .schemas import (
    ActionResult,
    ApprovalDriver,
    ApprovalRequest,
    ApprovalStudent,
    ApprovalsPage,
    RydDetails,
)

log = logging.getLogger(__name__)


def pending_approval_requests(session: Session, student_ids: List[int]) -> List[ApprovalRequest]:
    if not student_ids:
        return []

    rows = session.exec(
        select(m.ManifestEntry, m.ActiveRyd)
        .join(m.ActiveRyd, m.ActiveRyd.id == m.ManifestEntry.ryd_id)
        .where(m.ManifestEntry.status == m.PassengerManifestStatus.PENDING_PARENT_APPROVAL)
        .where(m.ManifestEntry.user_id.in_(student_ids))
        .order_by(m.ManifestEntry.requested_at, m.ManifestEntry.id)
    ).all()

    people = profiles.fetch_users(
        session,
        [ryd.driver_id for _, ryd in rows] + [entry.user_id for entry, _ in rows],
    )

    out: List[ApprovalRequest] = []
    for entry, ryd in rows:
        driver = people.get(ryd.driver_id)
        student = people.get(entry.user_id)
        if not driver or not student:
            # best effort: one broken request must not hide the others
            log.warning(
                "Dropping approval request for ryd %s student %s: missing %s profile",
                ryd.id, entry.user_id, "driver" if not driver else "student",
            )
            continue
        out.append(ApprovalRequest(
            active_ryd_id=ryd.id,
            student=ApprovalStudent(uid=student.id, full_name=student.name),
            driver=ApprovalDriver(uid=driver.id, full_name=driver.name, avatar_url=driver.avatar_url),
            ryd_details=RydDetails(
                event_name=ryd.event_name or "Unnamed Ryd",
                destination=ryd.final_destination_address or "N/A",
            ),
        ))
    return out


def get_parent_approvals_page(session: Session, parent_user_id: int) -> ActionResult:
    try:
        parent = profiles.require_parent(session, parent_user_id)
        student_ids = profiles.managed_student_ids(session, parent.id)
        approved_ids = list(profiles.approved_drivers(session, parent.id).keys())
        declined_ids = profiles.declined_driver_ids(session, parent.id)

        pending = pending_approval_requests(session, student_ids)

        people = profiles.fetch_users(session, approved_ids + declined_ids + student_ids)

        def infos(ids):
            return [profiles.display_info(people[i]) for i in ids if i in people]

        page = ApprovalsPage(
            pending_approvals=pending,
            approved_drivers=infos(approved_ids),
            declined_drivers=infos(declined_ids),
            managed_students=infos(student_ids),
        )
        return ActionResult(
            success=True,
            message=f"{len(pending)} pending approval requests.",
            data=page,
        )
    except Exception as e:
        return handle_action_error(e, "getParentApprovalsPage")
