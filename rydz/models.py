from enum import Enum
from typing import Optional
from datetime import datetime, timezone
from sqlalchemy import DateTime
from sqlmodel import SQLModel, Field, UniqueConstraint, Index


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UserRole(str, Enum):
    STUDENT = "student"
    PARENT = "parent"
    DRIVER = "driver"
    ADMIN = "admin"


class UserStatus(str, Enum):
    ACTIVE = "active"
    INVITED = "invited"


class ActiveRydStatus(str, Enum):
    PLANNING = "planning"
    AWAITING_PASSENGERS = "awaiting_passengers"
    RYD_PLANNED = "ryd_planned"
    IN_PROGRESS_PICKUP = "in_progress_pickup"
    IN_PROGRESS_ROUTE = "in_progress_route"
    COMPLETED = "completed"
    CANCELLED_BY_DRIVER = "cancelled_by_driver"
    CANCELLED_BY_SYSTEM = "cancelled_by_system"


class PassengerManifestStatus(str, Enum):
    PENDING_PARENT_APPROVAL = "pending_parent_approval"
    REJECTED_BY_PARENT = "rejected_by_parent"
    PENDING_DRIVER_APPROVAL = "pending_driver_approval"
    CONFIRMED_BY_DRIVER = "confirmed_by_driver"
    REJECTED_BY_DRIVER = "rejected_by_driver"
    AWAITING_PICKUP = "awaiting_pickup"
    ON_BOARD = "on_board"
    DROPPED_OFF = "dropped_off"
    MISSED_PICKUP = "missed_pickup"
    CANCELLED_BY_PASSENGER = "cancelled_by_passenger"


class NotificationType(str, Enum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


# Entries in these states no longer hold a seat.
INACTIVE_PASSENGER_STATUSES = {
    PassengerManifestStatus.CANCELLED_BY_PASSENGER,
    PassengerManifestStatus.REJECTED_BY_DRIVER,
    PassengerManifestStatus.REJECTED_BY_PARENT,
    PassengerManifestStatus.MISSED_PICKUP,
}


class User(SQLModel, table=True):
    __table_args__ = (UniqueConstraint("email"), UniqueConstraint("firebase_uid"))
    id: Optional[int] = Field(default=None, primary_key=True)
    firebase_uid: Optional[str] = None
    name: str
    email: str
    role: UserRole = UserRole.STUDENT
    status: UserStatus = UserStatus.ACTIVE
    invited_by: Optional[int] = None
    can_drive: bool = False
    avatar_url: Optional[str] = None
    bio: Optional[str] = None
    phone: Optional[str] = None
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))
    updated_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))

    @property
    def pickup_address(self) -> str:
        parts = [p for p in (self.street, self.city, self.state, self.zip_code) if p]
        return ", ".join(parts) or "Pickup to be coordinated"


class ParentStudentLink(SQLModel, table=True):
    __table_args__ = (UniqueConstraint("parent_id", "student_id"),)
    id: Optional[int] = Field(default=None, primary_key=True)
    parent_id: int = Field(foreign_key="user.id", index=True)
    student_id: int = Field(foreign_key="user.id", index=True)
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))


class ApprovedDriver(SQLModel, table=True):
    """One row per (parent, driver, student) the parent has pre-approved."""
    __table_args__ = (UniqueConstraint("parent_id", "driver_id", "student_id"),)
    id: Optional[int] = Field(default=None, primary_key=True)
    parent_id: int = Field(foreign_key="user.id", index=True)
    driver_id: int = Field(foreign_key="user.id", index=True)
    student_id: int = Field(foreign_key="user.id")
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))


class DeclinedDriver(SQLModel, table=True):
    __table_args__ = (UniqueConstraint("parent_id", "driver_id"),)
    id: Optional[int] = Field(default=None, primary_key=True)
    parent_id: int = Field(foreign_key="user.id", index=True)
    driver_id: int = Field(foreign_key="user.id", index=True)
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))


class ActiveRyd(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    driver_id: int = Field(foreign_key="user.id", index=True)
    event_name: Optional[str] = None
    start_location_address: Optional[str] = None
    final_destination_address: Optional[str] = None
    passenger_capacity: int = 0
    status: ActiveRydStatus = Field(default=ActiveRydStatus.AWAITING_PASSENGERS, index=True)
    proposed_departure_time: Optional[datetime] = Field(default=None, sa_type=DateTime(timezone=True))
    notes: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))
    updated_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))


class ManifestEntry(SQLModel, table=True):
    __table_args__ = (Index("ix_manifestentry_status_user", "status", "user_id"),)
    id: Optional[int] = Field(default=None, primary_key=True)
    ryd_id: int = Field(foreign_key="activeryd.id", index=True)
    user_id: int = Field(foreign_key="user.id", index=True)
    pickup_address: Optional[str] = None
    destination_address: Optional[str] = None
    status: PassengerManifestStatus
    requested_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))
    updated_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))


class Notification(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="user.id", index=True)
    title: str
    message: str
    type: NotificationType = NotificationType.INFO
    link: str = ""
    read: bool = False
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True), index=True)
