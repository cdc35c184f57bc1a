"""
Profile model with role-based access.
A profile is both the login identity and the employee record.
"""
from sqlalchemy import Column, Integer, String, Enum, DateTime, Boolean, ForeignKey
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
import enum
from appraisal_api.database import Base


class UserRole(str, enum.Enum):
    """
    Profile roles.

    - ADMIN: full access, including destructive operations
    - HR: HR staff; also sits on the appraisal committee
    - MANAGER: line manager reviewing direct reports
    - STAFF: self-service access
    """
    STAFF = "staff"
    MANAGER = "manager"
    HR = "hr"
    ADMIN = "admin"


class Profile(Base):
    __tablename__ = "profiles"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    hashed_password = Column(String, nullable=False)
    first_name = Column(String, nullable=False)
    last_name = Column(String, nullable=False)
    position = Column(String, nullable=True)

    role = Column(Enum(UserRole, values_callable=lambda e: [m.value for m in e]), default=UserRole.STAFF, nullable=False)

    department_id = Column(Integer, ForeignKey("departments.id", use_alter=True, name="fk_profile_department_id"), nullable=True)
    line_manager_id = Column(Integer, ForeignKey("profiles.id"), nullable=True)

    is_active = Column(Boolean, default=True, nullable=False)
    last_login = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    # Relationships
    department = relationship("Department", foreign_keys=[department_id], back_populates="members")
    line_manager = relationship("Profile", remote_side=[id], back_populates="direct_reports")
    direct_reports = relationship("Profile", back_populates="line_manager")
    sessions = relationship("UserSession", back_populates="profile", cascade="all, delete-orphan")
    notifications = relationship("Notification", foreign_keys="Notification.user_id", back_populates="profile", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Profile {self.email} ({self.role.value})>"

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def is_hr(self) -> bool:
        """HR and admins run the committee and HR stages."""
        return self.role in (UserRole.HR, UserRole.ADMIN)

    @property
    def is_manager(self) -> bool:
        return self.role in (UserRole.MANAGER, UserRole.HR, UserRole.ADMIN)


class UserSession(Base):
    __tablename__ = "user_sessions"

    id = Column(Integer, primary_key=True, index=True)
    profile_id = Column(Integer, ForeignKey("profiles.id"), nullable=False)
    refresh_token = Column(String, unique=True, index=True, nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    is_revoked = Column(Boolean, default=False, nullable=False)

    profile = relationship("Profile", back_populates="sessions")
