"""User model.

Identity (login, role resolution) is handled outside the reservation core;
this table only holds what reservations and notifications need to reference.
"""

import enum

from sqlalchemy import Boolean, Enum, String
from sqlalchemy.orm import Mapped, mapped_column

from playhub.models.base import Base, TimestampMixin


class UserRole(enum.StrEnum):
    """Platform roles."""

    CUSTOMER = "customer"
    OWNER = "owner"
    SYSADMIN = "sysadmin"


class User(TimestampMixin, Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True)
    email: Mapped[str] = mapped_column(String(254), unique=True, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    phone: Mapped[str | None] = mapped_column(String(50))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    role: Mapped[UserRole] = mapped_column(
        Enum(UserRole, name="user_role", values_callable=lambda e: [x.value for x in e]),
        default=UserRole.CUSTOMER,
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<User {self.email}>"
