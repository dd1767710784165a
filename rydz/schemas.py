from enum import Enum
from typing import Any, Dict, List, Literal, Optional
from datetime import datetime
from pydantic import BaseModel, Field

from .models import (
    ActiveRydStatus,
    NotificationType,
    PassengerManifestStatus,
    UserRole,
    UserStatus,
)


class ORMModel(BaseModel):
    model_config = {"from_attributes": True}


class ApprovalDecision(str, Enum):
    APPROVE_ONCE = "approve_once"
    APPROVE_PERMANENTLY = "approve_permanently"
    REJECT = "reject"


DriverListName = Literal["approved", "declined"]


# ------------------------------------------------------------------
# Action results (every core operation returns one of these)
# ------------------------------------------------------------------
class ActionResult(BaseModel):
    success: bool
    message: str
    kind: Optional[str] = None
    data: Optional[Any] = None


class NotificationResult(BaseModel):
    success: bool
    message: str
    notification_id: Optional[int] = None


# ------------------------------------------------------------------
# Users
# ------------------------------------------------------------------
class UserUpdate(ORMModel):
    name: Optional[str] = None
    role: Optional[UserRole] = None
    can_drive: Optional[bool] = None
    bio: Optional[str] = None
    phone: Optional[str] = None
    avatar_url: Optional[str] = None
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None


class UserRead(ORMModel):
    id: int
    name: str
    email: str
    role: UserRole
    status: UserStatus
    can_drive: bool
    avatar_url: Optional[str] = None
    bio: Optional[str] = None
    phone: Optional[str] = None
    managed_student_ids: List[int] = []
    associated_parent_ids: List[int] = []
    approved_drivers: Dict[int, List[int]] = {}
    declined_driver_ids: List[int] = []


class UserDisplayInfo(BaseModel):
    uid: int
    full_name: str
    email: str
    avatar_url: Optional[str] = None


class ManagedStudent(BaseModel):
    id: int
    full_name: str


class AssociateStudentRequest(BaseModel):
    student_email: str


class AssociateParentRequest(BaseModel):
    parent_email: str


# ------------------------------------------------------------------
# Active rydz and their passenger manifest
# ------------------------------------------------------------------
class ActiveRydCreate(ORMModel):
    event_name: Optional[str] = None
    start_location_address: Optional[str] = None
    final_destination_address: Optional[str] = None
    passenger_capacity: int = Field(ge=1)
    proposed_departure_time: Optional[datetime] = None
    notes: Optional[str] = None


class ManifestEntryRead(ORMModel):
    user_id: int
    status: PassengerManifestStatus
    pickup_address: Optional[str] = None
    destination_address: Optional[str] = None
    requested_at: datetime


class ActiveRydRead(ORMModel):
    id: int
    driver_id: int
    event_name: Optional[str] = None
    start_location_address: Optional[str] = None
    final_destination_address: Optional[str] = None
    passenger_capacity: int
    status: ActiveRydStatus
    proposed_departure_time: Optional[datetime] = None
    notes: Optional[str] = None
    passenger_manifest: List[ManifestEntryRead] = []
    uids_pending_parental_approval: List[int] = []
    updated_at: datetime


class JoinRydRequest(BaseModel):
    # defaults to the acting user
    passenger_user_id: Optional[int] = None


class PassengerDecisionRequest(BaseModel):
    passenger_user_id: int
    new_status: PassengerManifestStatus


class CancelSpotRequest(BaseModel):
    passenger_user_id: Optional[int] = None


# ------------------------------------------------------------------
# Parental approvals
# ------------------------------------------------------------------
class DriverApprovalDecisionRequest(BaseModel):
    student_user_id: int
    driver_id: int
    active_ryd_id: int
    decision: ApprovalDecision


class DriverListUpdateRequest(BaseModel):
    driver_id: int
    list_name: DriverListName
    action: Literal["add", "remove"] = "remove"


class ApproveDriverByEmailRequest(BaseModel):
    driver_email: str
    student_ids: List[int]


class ApprovalStudent(BaseModel):
    uid: int
    full_name: str


class ApprovalDriver(BaseModel):
    uid: int
    full_name: str
    avatar_url: Optional[str] = None


class RydDetails(BaseModel):
    event_name: str
    destination: str


class ApprovalRequest(BaseModel):
    active_ryd_id: int
    student: ApprovalStudent
    driver: ApprovalDriver
    ryd_details: RydDetails


class ApprovalsPage(BaseModel):
    pending_approvals: List[ApprovalRequest] = []
    approved_drivers: List[UserDisplayInfo] = []
    declined_drivers: List[UserDisplayInfo] = []
    managed_students: List[UserDisplayInfo] = []


class DriverLookup(BaseModel):
    driver: UserDisplayInfo
    approved_student_ids: List[int] = []


# ------------------------------------------------------------------
# Notifications
# ------------------------------------------------------------------
class NotificationRead(ORMModel):
    id: int
    user_id: int
    title: str
    message: str
    type: NotificationType
    link: str
    read: bool
    created_at: datetime
