from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from typing import List

from appraisal_api.database import get_db
from appraisal_api.models.department import Department
from appraisal_api.models.profile import Profile
from appraisal_api.routers.auth_deps import get_current_user, require_hr
from appraisal_api.schemas.department import DepartmentCreate, DepartmentResponse, DepartmentUpdate
from appraisal_api.services.audit import AuditService

router = APIRouter(prefix="/departments", tags=["Departments"])


def _to_response(department: Department) -> DepartmentResponse:
    response = DepartmentResponse.model_validate(department)
    response.member_count = len(department.members)
    return response


def _get_or_404(db: Session, department_id: int) -> Department:
    department = db.get(Department, department_id)
    if not department:
        raise HTTPException(status_code=404, detail="Department not found")
    return department


@router.get("/", response_model=List[DepartmentResponse])
def list_departments(
    include_inactive: bool = False,
    db: Session = Depends(get_db),
    current_user: Profile = Depends(get_current_user)
):
    query = db.query(Department)
    if not include_inactive:
        query = query.filter(Department.is_active == True)  # noqa: E712
    return [_to_response(d) for d in query.order_by(Department.name).all()]


@router.get("/{department_id}", response_model=DepartmentResponse)
def get_department(
    department_id: int,
    db: Session = Depends(get_db),
    current_user: Profile = Depends(get_current_user)
):
    return _to_response(_get_or_404(db, department_id))


@router.post("/", response_model=DepartmentResponse, status_code=status.HTTP_201_CREATED)
def create_department(
    data: DepartmentCreate,
    db: Session = Depends(get_db),
    current_user: Profile = Depends(require_hr())
):
    if db.query(Department).filter(Department.name == data.name).first():
        raise HTTPException(status_code=400, detail=f"Department '{data.name}' already exists")
    if data.line_manager_id is not None and db.get(Profile, data.line_manager_id) is None:
        raise HTTPException(status_code=404, detail="Line manager not found")

    department = Department(**data.model_dump())
    db.add(department)
    db.flush()
    AuditService.log(db, "create_department", "department", department.id, current_user.id, current_user.role,
                     {"name": department.name})
    db.commit()
    db.refresh(department)
    return _to_response(department)


@router.patch("/{department_id}", response_model=DepartmentResponse)
def update_department(
    department_id: int,
    data: DepartmentUpdate,
    db: Session = Depends(get_db),
    current_user: Profile = Depends(require_hr())
):
    department = _get_or_404(db, department_id)
    changes = data.model_dump(exclude_unset=True)
    if "name" in changes:
        clash = db.query(Department).filter(Department.name == changes["name"], Department.id != department.id).first()
        if clash:
            raise HTTPException(status_code=400, detail=f"Department '{changes['name']}' already exists")
    if changes.get("line_manager_id") is not None and db.get(Profile, changes["line_manager_id"]) is None:
        raise HTTPException(status_code=404, detail="Line manager not found")

    for key, value in changes.items():
        setattr(department, key, value)
    db.commit()
    db.refresh(department)
    return _to_response(department)


@router.delete("/{department_id}", status_code=status.HTTP_204_NO_CONTENT)
def deactivate_department(
    department_id: int,
    db: Session = Depends(get_db),
    current_user: Profile = Depends(require_hr())
):
    """Soft delete: members keep their department reference."""
    department = _get_or_404(db, department_id)
    department.is_active = False
    AuditService.log(db, "deactivate_department", "department", department.id, current_user.id, current_user.role, {})
    db.commit()
