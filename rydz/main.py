# rydz/main.py
import logging
from typing import List

from fastapi import FastAPI, HTTPException, Depends
from fastapi.middleware.cors import CORSMiddleware

from sqlmodel import Session

from . import config
from .database import init_db, get_session
from .auth import get_current_user_id
from . import approvals, approvals_page, driver_lists, family, notifications, profiles, rydz_workflow
from . import models as m
from . import schemas as s

log = logging.getLogger(__name__)

STATUS_BY_KIND = {
    "ValidationError": 400,
    "InvalidSelf": 400,
    "Unauthorized": 403,
    "NotFound": 404,
    "StaleRequest": 409,
    "TransientInfrastructureError": 503,
}


def unwrap(result: s.ActionResult) -> s.ActionResult:
    if not result.success:
        raise HTTPException(STATUS_BY_KIND.get(result.kind, 500), result.message)
    return result


def create_app() -> FastAPI:
    logging.basicConfig(
        level=config.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    app = FastAPI(title="RydzConnect API", version=config.APP_VERSION)

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.on_event("startup")
    def _startup():
        init_db()

    # ---------------- Health ----------------
    @app.get("/api/health")
    def health():
        return {"status": "ok", "version": config.APP_VERSION}

    # ---------------- Users -----------------
    @app.get("/api/users/me", response_model=s.UserRead)
    def me(
        user_id: int = Depends(get_current_user_id),
        session: Session = Depends(get_session),
    ):
        user = session.get(m.User, user_id)
        if not user:
            raise HTTPException(404, "User not found")
        return profiles.user_read(session, user)

    @app.patch("/api/users/{user_id}", response_model=s.UserRead)
    def update_user(
        user_id: int,
        payload: s.UserUpdate,
        current_id: int = Depends(get_current_user_id),
        session: Session = Depends(get_session),
    ):
        if current_id != user_id:
            raise HTTPException(403, "You can only update your own profile")
        user = session.get(m.User, user_id)
        if not user:
            raise HTTPException(404, "User not found")
        for k, v in payload.model_dump(exclude_unset=True).items():
            setattr(user, k, v)
        user.updated_at = m.utcnow()
        session.add(user)
        session.commit()
        session.refresh(user)
        return profiles.user_read(session, user)

    # ---------------- Family ----------------
    @app.get("/api/family/students", response_model=s.ActionResult)
    def managed_students(
        user_id: int = Depends(get_current_user_id),
        session: Session = Depends(get_session),
    ):
        return unwrap(family.get_managed_students(session, user_id))

    @app.post("/api/family/students", response_model=s.ActionResult)
    def add_student(
        payload: s.AssociateStudentRequest,
        user_id: int = Depends(get_current_user_id),
        session: Session = Depends(get_session),
    ):
        return unwrap(family.associate_student_with_parent(session, user_id, payload.student_email))

    @app.post("/api/family/parents", response_model=s.ActionResult)
    def add_parent(
        payload: s.AssociateParentRequest,
        user_id: int = Depends(get_current_user_id),
        session: Session = Depends(get_session),
    ):
        return unwrap(family.associate_parent_with_student(session, user_id, payload.parent_email))

    # ---------------- Rydz ------------------
    @app.post("/api/rydz", response_model=s.ActionResult, status_code=201)
    def create_ryd(
        payload: s.ActiveRydCreate,
        user_id: int = Depends(get_current_user_id),
        session: Session = Depends(get_session),
    ):
        return unwrap(rydz_workflow.create_active_ryd(session, user_id, payload))

    @app.get("/api/rydz/{ryd_id}", response_model=s.ActiveRydRead)
    def get_ryd(
        ryd_id: int,
        user_id: int = Depends(get_current_user_id),
        session: Session = Depends(get_session),
    ):
        return unwrap(rydz_workflow.get_active_ryd(session, ryd_id)).data

    @app.post("/api/rydz/{ryd_id}/join", response_model=s.ActionResult)
    def join_ryd(
        ryd_id: int,
        payload: s.JoinRydRequest,
        user_id: int = Depends(get_current_user_id),
        session: Session = Depends(get_session),
    ):
        passenger_id = payload.passenger_user_id or user_id
        return unwrap(rydz_workflow.request_to_join(session, ryd_id, passenger_id, user_id))

    @app.post("/api/rydz/{ryd_id}/passengers", response_model=s.ActionResult)
    def decide_passenger(
        ryd_id: int,
        payload: s.PassengerDecisionRequest,
        user_id: int = Depends(get_current_user_id),
        session: Session = Depends(get_session),
    ):
        return unwrap(rydz_workflow.manage_passenger_join_request(
            session, ryd_id, payload.passenger_user_id, user_id, payload.new_status,
        ))

    @app.post("/api/rydz/{ryd_id}/cancel", response_model=s.ActionResult)
    def cancel_spot(
        ryd_id: int,
        payload: s.CancelSpotRequest,
        user_id: int = Depends(get_current_user_id),
        session: Session = Depends(get_session),
    ):
        passenger_id = payload.passenger_user_id or user_id
        return unwrap(rydz_workflow.cancel_passenger_spot(session, ryd_id, passenger_id, user_id))

    # ------------- Parent approvals -------------
    @app.get("/api/parent/approvals", response_model=s.ApprovalsPage)
    def approvals_overview(
        user_id: int = Depends(get_current_user_id),
        session: Session = Depends(get_session),
    ):
        return unwrap(approvals_page.get_parent_approvals_page(session, user_id)).data

    @app.post("/api/parent/approvals", response_model=s.ActionResult)
    def decide_approval(
        payload: s.DriverApprovalDecisionRequest,
        user_id: int = Depends(get_current_user_id),
        session: Session = Depends(get_session),
    ):
        return unwrap(approvals.decide_driver_approval(
            session,
            parent_user_id=user_id,
            student_user_id=payload.student_user_id,
            driver_id=payload.driver_id,
            active_ryd_id=payload.active_ryd_id,
            decision=payload.decision,
        ))

    @app.get("/api/parent/drivers/lookup", response_model=s.DriverLookup)
    def lookup_driver(
        email: str,
        user_id: int = Depends(get_current_user_id),
        session: Session = Depends(get_session),
    ):
        return unwrap(driver_lists.find_driver_by_email(session, user_id, email)).data

    @app.post("/api/parent/drivers/approve", response_model=s.ActionResult)
    def approve_driver(
        payload: s.ApproveDriverByEmailRequest,
        user_id: int = Depends(get_current_user_id),
        session: Session = Depends(get_session),
    ):
        return unwrap(driver_lists.approve_driver_for_students(
            session, user_id, payload.driver_email, payload.student_ids,
        ))

    @app.post("/api/parent/drivers", response_model=s.ActionResult)
    def update_driver_list(
        payload: s.DriverListUpdateRequest,
        user_id: int = Depends(get_current_user_id),
        session: Session = Depends(get_session),
    ):
        return unwrap(driver_lists.update_driver_list(
            session, user_id, payload.driver_id, payload.list_name, payload.action,
        ))

    @app.delete("/api/parent/drivers/{list_name}/{driver_id}", response_model=s.ActionResult)
    def remove_driver(
        list_name: s.DriverListName,
        driver_id: int,
        user_id: int = Depends(get_current_user_id),
        session: Session = Depends(get_session),
    ):
        return unwrap(driver_lists.remove_from_list(session, user_id, driver_id, list_name))

    # ------------- Notifications -------------
    @app.get("/api/notifications", response_model=List[s.NotificationRead])
    def list_notifications(
        user_id: int = Depends(get_current_user_id),
        session: Session = Depends(get_session),
    ):
        return unwrap(notifications.get_notifications(session, user_id)).data

    @app.post("/api/notifications/read-all", response_model=s.ActionResult)
    def read_all_notifications(
        user_id: int = Depends(get_current_user_id),
        session: Session = Depends(get_session),
    ):
        return unwrap(notifications.mark_all_notifications_as_read(session, user_id))

    @app.post("/api/notifications/{notification_id}/read", response_model=s.ActionResult)
    def read_notification(
        notification_id: int,
        user_id: int = Depends(get_current_user_id),
        session: Session = Depends(get_session),
    ):
        return unwrap(notifications.mark_notification_as_read(session, user_id, notification_id))

    return app

app = create_app()
