# Models package
# Importing modules here ensures they are registered with SQLAlchemy Base
from . import (
    profile, department, appraisal_cycle, question, appraisal,
    performance_analytics, notification, audit_log,
    training, attendance, candidate
)

# Explicit class exports for cleaner imports
from .profile import Profile, UserRole, UserSession
from .department import Department
from .appraisal_cycle import AppraisalCycle, CycleStatus
from .question import AppraisalQuestion, AppraisalQuestionSection, EmployeeQuestionAssignment, ScoringType
from .appraisal import Appraisal, AppraisalResponse, AppraisalSettings, AppraisalStatus
from .performance_analytics import PerformanceAnalytics
from .notification import Notification

__all__ = [
    "Profile",
    "UserRole",
    "UserSession",
    "Department",
    "AppraisalCycle",
    "CycleStatus",
    "AppraisalQuestion",
    "AppraisalQuestionSection",
    "EmployeeQuestionAssignment",
    "ScoringType",
    "Appraisal",
    "AppraisalResponse",
    "AppraisalSettings",
    "AppraisalStatus",
    "PerformanceAnalytics",
    "Notification",
]
