import enum
import uuid

from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey, UniqueConstraint, Uuid
from sqlalchemy.sql import func

from app.database import Base


# ---------------------------------------------------
# Enums
# ---------------------------------------------------

class Role(str, enum.Enum):
    OWNER = "OWNER"
    ADMIN = "ADMIN"
    MANAGER = "MANAGER"
    CONSULTANT = "CONSULTANT"


ROLE_PRECEDENCE = [Role.OWNER, Role.ADMIN, Role.MANAGER, Role.CONSULTANT]

COUNTRIES = ("US", "INDIA")


# ---------------------------------------------------
# Org user (mirror of a workspace account)
# ---------------------------------------------------

class OrgUser(Base):
    __tablename__ = "org_users"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4, nullable=False)

    # Workspace provider account id, stored as text
    clickup_user_id = Column(String(64), nullable=False, unique=True, index=True)

    email = Column(String(255), nullable=True, index=True)
    name = Column(String(200), nullable=True)
    country = Column(String(20), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)


class OrgRole(Base):
    __tablename__ = "org_roles"
    __table_args__ = (UniqueConstraint("user_id", "role", name="uq_org_roles_user_role"),)

    id = Column(Uuid, primary_key=True, default=uuid.uuid4, nullable=False)
    user_id = Column(
        Uuid,
        ForeignKey("org_users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    role = Column(String(20), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class OrgReportingManager(Base):
    __tablename__ = "org_reporting_managers"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4, nullable=False)

    # one manager per user
    user_id = Column(
        Uuid,
        ForeignKey("org_users.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
        index=True,
    )
    manager_user_id = Column(
        Uuid,
        ForeignKey("org_users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
