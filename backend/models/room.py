from __future__ import annotations

import uuid

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, Integer, Text, UniqueConstraint, Uuid
from sqlalchemy.sql import func

from models.base import Base


class Room(Base):
    __tablename__ = "rooms"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    school_id = Column(Uuid, nullable=False, index=True)
    name = Column(Text, nullable=False)
    # Free-form type ("LAB", "GYM", ...). Typeless rooms accept any requirement.
    room_type = Column(Text, nullable=True)
    capacity = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        CheckConstraint("capacity >= 0", name="ck_rooms_capacity"),
        UniqueConstraint("school_id", "name", name="uq_rooms_school_name"),
    )
