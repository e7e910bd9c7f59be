"""
User model mirroring the identities issued by the external auth provider.
Only the fields the booking workflow needs: role for authorization and
is_active to reject disabled accounts.
"""

import uuid

from sqlalchemy import Column, String, Boolean, Uuid, CheckConstraint

from booking_api.db.base import Base, TimestampMixin

USER_ROLES = ("user", "admin")


class User(Base, TimestampMixin):
    __tablename__ = "users"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    email = Column(String(255), unique=True, index=True, nullable=False)
    username = Column(String(100), unique=True, index=True, nullable=False)
    role = Column(String(20), nullable=False, default="user", index=True)
    is_active = Column(Boolean, default=True, nullable=False)

    __table_args__ = (
        CheckConstraint("role IN ('user', 'admin')", name="check_user_role"),
    )

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email}, role={self.role})>"
