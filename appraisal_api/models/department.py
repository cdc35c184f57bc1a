from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Boolean, Text
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from appraisal_api.database import Base


class Department(Base):
    __tablename__ = "departments"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False, unique=True, index=True)
    description = Column(Text, nullable=True)

    # Line manager for the whole department
    line_manager_id = Column(Integer, ForeignKey("profiles.id", use_alter=True, name="fk_department_line_manager_id"), nullable=True)

    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    line_manager = relationship("Profile", foreign_keys=[line_manager_id])
    members = relationship("Profile", foreign_keys="Profile.department_id", back_populates="department")

    def __repr__(self):
        return f"<Department {self.name}>"
