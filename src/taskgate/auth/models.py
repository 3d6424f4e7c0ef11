"""
Authentication Models for TaskGate

Users are created and verified by the authentication capability only;
the task core never mutates or deletes them.
"""

import uuid
from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, String, Uuid

from taskgate.db.base import Base
from taskgate.utils.time import utc_now


class User(Base):
    """User account - created via registration"""
    __tablename__ = "auth_users"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    username = Column(String(255), unique=True, nullable=False, index=True)

    # Opaque credential reference (bcrypt hash)
    password_hash = Column(String(255), nullable=False)

    # Account status
    is_active = Column(Boolean, default=True, nullable=False)

    # Timestamps
    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)
    last_login = Column(DateTime(timezone=True), nullable=True)

    @property
    def subject(self) -> str:
        """Identity subject carried in tokens."""
        return str(self.id)

    def record_login(self, when: datetime | None = None) -> None:
        self.last_login = when or utc_now()

    def __repr__(self):
        return f"<User {self.username}>"
