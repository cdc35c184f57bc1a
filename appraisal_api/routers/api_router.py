from fastapi import APIRouter
from appraisal_api.routers import (
    auth, profiles, departments, cycles, questions, appraisals, committee, hr,
    notifications, training, attendance, recruitment, setup
)

# Centralized API router hub: routers are aggregated here and main.py
# only imports this single hub.
api_router = APIRouter()

api_router.include_router(auth.router, tags=["Authentication"])
api_router.include_router(profiles.router, tags=["Profiles"])
api_router.include_router(departments.router, tags=["Departments"])
api_router.include_router(cycles.router, tags=["Appraisal Cycles"])
api_router.include_router(questions.router, tags=["Question Bank"])
api_router.include_router(appraisals.router, tags=["Appraisals"])
api_router.include_router(committee.router, tags=["Committee"])
api_router.include_router(hr.router, tags=["HR"])
api_router.include_router(notifications.router, tags=["Notifications"])
api_router.include_router(training.router, tags=["Training"])
api_router.include_router(attendance.router, tags=["Attendance"])
api_router.include_router(recruitment.router, tags=["Recruitment"])
api_router.include_router(setup.router, prefix="/setup", tags=["System Setup"])
