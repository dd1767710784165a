# rydz/family.py
import logging

from sqlmodel import Session

from . import driver_lists
from . import models as m
from . import profiles
from .errors import InvalidSelf, NotFound, Unauthorized, ValidationError, handle_action_error
from .schemas import ActionResult, ManagedStudent

log = logging.getLogger(__name__)


def _link(session: Session, parent: m.User, student: m.User) -> None:
    session.add(m.ParentStudentLink(parent_id=parent.id, student_id=student.id))
    # a parent can always drive their own student
    driver_lists.add_approved_students(session, parent.id, parent.id, [student.id])


def associate_student_with_parent(session: Session, parent_user_id: int, student_email: str) -> ActionResult:
    try:
        if not parent_user_id or not student_email or not student_email.strip():
            raise ValidationError("Parent and student email are required.")
        normalized = student_email.strip().lower()

        parent = profiles.get_user(session, parent_user_id, for_update=True)
        if not parent or parent.role != m.UserRole.PARENT:
            raise Unauthorized("The requesting user is not a valid parent.")
        if normalized == parent.email.lower():
            raise InvalidSelf("You cannot add yourself as a managed student.")

        student = profiles.find_user_by_email(session, normalized)
        if student is None:
            # placeholder until the student signs up with this email
            student = m.User(
                name="Invited User",
                email=normalized,
                role=m.UserRole.STUDENT,
                status=m.UserStatus.INVITED,
                invited_by=parent.id,
            )
            session.add(student)
            session.flush()
            log.info("Created invited student %s for %s", student.id, normalized)
        else:
            if student.role != m.UserRole.STUDENT:
                raise ValidationError(f"{normalized} is not registered as a student.")
            if student.id in profiles.managed_student_ids(session, parent.id):
                raise ValidationError(f"{student.name} is already in your managed students list.")

        _link(session, parent, student)
        session.commit()
        return ActionResult(
            success=True,
            message=f"{student.name} has been successfully linked.",
            data={"student_id": student.id},
        )
    except Exception as e:
        session.rollback()
        return handle_action_error(e, "associateStudentWithParent")


def associate_parent_with_student(session: Session, student_user_id: int, parent_email: str) -> ActionResult:
    try:
        if not student_user_id or not parent_email or not parent_email.strip():
            raise ValidationError("Student and parent email are required.")

        student = profiles.get_user(session, student_user_id)
        if not student or student.role != m.UserRole.STUDENT:
            raise Unauthorized("The requesting user is not a valid student.")

        parent = profiles.find_user_by_email(session, parent_email)
        if not parent:
            raise NotFound(f"No user found with the email: {parent_email.strip()}.")
        if parent.role != m.UserRole.PARENT:
            raise ValidationError(f"{parent_email.strip()} is not registered as a parent.")
        if parent.id in profiles.associated_parent_ids(session, student.id):
            raise ValidationError(f"{parent.name} is already linked as a parent.")

        _link(session, parent, student)
        session.commit()
        return ActionResult(
            success=True,
            message=f"{parent.name} has been successfully linked.",
            data={"parent_id": parent.id},
        )
    except Exception as e:
        session.rollback()
        return handle_action_error(e, "associateParentWithStudent")


def get_managed_students(session: Session, parent_user_id: int) -> ActionResult:
    try:
        parent = profiles.require_parent(session, parent_user_id)
        ids = profiles.managed_student_ids(session, parent.id)
        people = profiles.fetch_users(session, ids)
        students = [ManagedStudent(id=i, full_name=people[i].name) for i in ids if i in people]
        return ActionResult(success=True, message=f"{len(students)} managed students.", data=students)
    except Exception as e:
        return handle_action_error(e, "getManagedStudents")
