import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base


def utcnow():
    """Naive UTC timestamp, matching how slot times are stored"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def generate_public_id():
    """Generate an opaque identifier for users, slots and swap requests"""
    return str(uuid.uuid4())


class SlotStatus(str, enum.Enum):
    BUSY = "BUSY"
    SWAPPABLE = "SWAPPABLE"
    # Lock marker: the slot is part of an unresolved swap request. This status is
    # the only thing stopping a slot from entering two negotiations at once.
    SWAP_PENDING = "SWAP_PENDING"


class SwapRequestStatus(str, enum.Enum):
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"


class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=generate_public_id)
    name = Column(String(100), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    hashed_password = Column(String(255), nullable=False)
    created_at = Column(DateTime, default=utcnow, server_default=func.now())
    updated_at = Column(DateTime, default=utcnow, server_default=func.now(), onupdate=utcnow)

    slots = relationship("Slot", back_populates="owner")


class Slot(Base):
    __tablename__ = "slots"
    __table_args__ = (
        CheckConstraint("end_time > start_time", name="ck_slots_end_after_start"),
        Index("ix_slots_owner_start", "owner_id", "start_time"),
    )

    id = Column(String(36), primary_key=True, default=generate_public_id)
    title = Column(String(100), nullable=False)
    start_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime, nullable=False)
    status = Column(String(20), default=SlotStatus.BUSY.value, nullable=False, index=True)
    owner_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    # Optimistic concurrency token, bumped on every write
    version = Column(Integer, default=1, nullable=False)
    created_at = Column(DateTime, default=utcnow, server_default=func.now())
    updated_at = Column(DateTime, default=utcnow, server_default=func.now(), onupdate=utcnow)

    owner = relationship("User", back_populates="slots")


class SwapRequest(Base):
    __tablename__ = "swap_requests"
    __table_args__ = (
        CheckConstraint("requester_id <> target_user_id", name="ck_swap_requests_distinct_users"),
        Index("ix_swap_requests_requester_status", "requester_id", "status"),
        Index("ix_swap_requests_target_status", "target_user_id", "status"),
    )

    id = Column(String(36), primary_key=True, default=generate_public_id)
    requester_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    # Slot ids are plain columns: requests are an audit trail and outlive deleted slots
    requester_slot_id = Column(String(36), nullable=False)
    target_user_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    target_slot_id = Column(String(36), nullable=False)
    status = Column(String(20), default=SwapRequestStatus.PENDING.value, nullable=False, index=True)
    created_at = Column(DateTime, default=utcnow, server_default=func.now())
    updated_at = Column(DateTime, default=utcnow, server_default=func.now(), onupdate=utcnow)

    requester = relationship("User", foreign_keys=[requester_id])
    target_user = relationship("User", foreign_keys=[target_user_id])
    requester_slot = relationship(
        "Slot",
        primaryjoin="foreign(SwapRequest.requester_slot_id) == Slot.id",
        viewonly=True,
    )
    target_slot = relationship(
        "Slot",
        primaryjoin="foreign(SwapRequest.target_slot_id) == Slot.id",
        viewonly=True,
    )
