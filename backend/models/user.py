"""User model definitions."""

from sqlalchemy import Column, Enum, Integer, String
from backend.core.statuses import UserRole
from backend.database import Base


class User(Base):
    """Represents an application user, mirrored from the identity provider."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True)
    name = Column(String)
    role = Column(
        Enum(UserRole, native_enum=False, length=16, values_callable=lambda roles: [role.value for role in roles]),
        nullable=False,
        default=UserRole.STUDENT,
    )
