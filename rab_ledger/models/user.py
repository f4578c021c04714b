"""User model - people who log in to the dashboard."""

from enum import Enum

from sqlalchemy import Boolean, Enum as SQLEnum, String
from sqlalchemy.orm import Mapped, mapped_column

from rab_ledger.models import Base, BaseModel


class UserRole(str, Enum):
    """System-wide role."""

    ADMIN = "admin"
    MEMBER = "member"


class User(Base, BaseModel):
    """Registered user.

    Attributes:
        name: Display name shown in member lists and spending charts
        email: Login identifier (unique)
        password_hash: bcrypt hash of the password
        role: ADMIN users decide expense claims and manage programs
        is_active: Inactive users cannot log in
    """

    __tablename__ = "users"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[UserRole] = mapped_column(
        SQLEnum(UserRole), nullable=False, default=UserRole.MEMBER
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    @property
    def is_admin(self) -> bool:
        """Check if user is an administrator."""
        return self.role == UserRole.ADMIN

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email}, role={self.role.value})>"
