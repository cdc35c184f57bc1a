"""
Question bank administration: sections, questions and explicit assignments.
"""
from datetime import datetime, timezone
from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status
from sqlalchemy.orm import Session
from typing import List, Optional

from appraisal_api.core.security import sanitize_input
from appraisal_api.database import get_db
from appraisal_api.models.appraisal_cycle import AppraisalCycle
from appraisal_api.models.profile import Profile
from appraisal_api.models.question import AppraisalQuestion, AppraisalQuestionSection, EmployeeQuestionAssignment
from appraisal_api.routers.auth_deps import get_current_user, require_hr
from appraisal_api.schemas.question import (
    QuestionAssignmentRequest, QuestionAssignmentResponse, QuestionCreate, QuestionResponse, QuestionUpdate,
    SectionCreate, SectionResponse, SectionUpdate,
)
from appraisal_api.services.audit import AuditService
from appraisal_api.services.notification_service import NotificationService, schedule_pushes
from appraisal_api.services.sections import section_sort_key

router = APIRouter(tags=["Question Bank"])


def _section_or_404(db: Session, section_id: int) -> AppraisalQuestionSection:
    section = db.get(AppraisalQuestionSection, section_id)
    if not section:
        raise HTTPException(status_code=404, detail="Section not found")
    return section


def _question_or_404(db: Session, question_id: int) -> AppraisalQuestion:
    question = db.get(AppraisalQuestion, question_id)
    if not question:
        raise HTTPException(status_code=404, detail="Question not found")
    return question


# --- Sections ---

@router.get("/sections", response_model=List[SectionResponse])
def list_sections(
    include_inactive: bool = False,
    db: Session = Depends(get_db),
    current_user: Profile = Depends(get_current_user)
):
    query = db.query(AppraisalQuestionSection)
    if not include_inactive:
        query = query.filter(AppraisalQuestionSection.is_active == True)  # noqa: E712
    return sorted(query.all(), key=lambda s: (s.sort_order, section_sort_key(s.name)))


@router.post("/sections", response_model=SectionResponse, status_code=status.HTTP_201_CREATED)
def create_section(
    data: SectionCreate,
    db: Session = Depends(get_db),
    current_user: Profile = Depends(require_hr())
):
    if db.query(AppraisalQuestionSection).filter(AppraisalQuestionSection.name == data.name).first():
        raise HTTPException(status_code=400, detail=f"Section '{data.name}' already exists")
    section = AppraisalQuestionSection(**data.model_dump(mode="json"))
    db.add(section)
    db.commit()
    db.refresh(section)
    return section


@router.patch("/sections/{section_id}", response_model=SectionResponse)
def update_section(
    section_id: int,
    data: SectionUpdate,
    db: Session = Depends(get_db),
    current_user: Profile = Depends(require_hr())
):
    section = _section_or_404(db, section_id)
    for key, value in data.model_dump(mode="json", exclude_unset=True).items():
        setattr(section, key, value)
    db.commit()
    db.refresh(section)
    return section


@router.delete("/sections/{section_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_section(
    section_id: int,
    db: Session = Depends(get_db),
    current_user: Profile = Depends(require_hr())
):
    """Deletes the section together with its questions."""
    section = _section_or_404(db, section_id)
    AuditService.log(db, "delete_section", "appraisal_question_section", section.id, current_user.id,
                     current_user.role, {"name": section.name, "questions": len(section.questions)})
    db.delete(section)
    db.commit()


# --- Questions ---

@router.get("/questions", response_model=List[QuestionResponse])
def list_questions(
    section_id: Optional[int] = None,
    cycle_id: Optional[int] = None,
    include_inactive: bool = False,
    db: Session = Depends(get_db),
    current_user: Profile = Depends(require_hr())
):
    query = db.query(AppraisalQuestion)
    if section_id:
        query = query.filter(AppraisalQuestion.section_id == section_id)
    if cycle_id:
        query = query.filter(AppraisalQuestion.cycle_id == cycle_id)
    if not include_inactive:
        query = query.filter(AppraisalQuestion.is_active == True)  # noqa: E712
    return query.order_by(AppraisalQuestion.sort_order, AppraisalQuestion.id).all()


@router.post("/questions", response_model=QuestionResponse, status_code=status.HTTP_201_CREATED)
def create_question(
    data: QuestionCreate,
    db: Session = Depends(get_db),
    current_user: Profile = Depends(require_hr())
):
    if data.section_id is not None:
        _section_or_404(db, data.section_id)
    if data.cycle_id is not None and db.get(AppraisalCycle, data.cycle_id) is None:
        raise HTTPException(status_code=404, detail="Appraisal cycle not found")
    payload = data.model_dump(mode="json")
    payload["question_text"] = sanitize_input(payload["question_text"])
    question = AppraisalQuestion(**payload)
    db.add(question)
    db.commit()
    db.refresh(question)
    return question


@router.patch("/questions/{question_id}", response_model=QuestionResponse)
def update_question(
    question_id: int,
    data: QuestionUpdate,
    db: Session = Depends(get_db),
    current_user: Profile = Depends(require_hr())
):
    question = _question_or_404(db, question_id)
    changes = data.model_dump(mode="json", exclude_unset=True)
    if changes.get("section_id") is not None:
        _section_or_404(db, changes["section_id"])
    if "question_text" in changes:
        changes["question_text"] = sanitize_input(changes["question_text"])
    for key, value in changes.items():
        setattr(question, key, value)
    db.commit()
    db.refresh(question)
    return question


@router.delete("/questions/{question_id}", status_code=status.HTTP_204_NO_CONTENT)
def deactivate_question(
    question_id: int,
    db: Session = Depends(get_db),
    current_user: Profile = Depends(require_hr())
):
    """Soft delete: existing responses keep pointing at the question."""
    question = _question_or_404(db, question_id)
    question.is_active = False
    db.commit()


# --- Assignments ---

@router.post("/questions/assign", response_model=List[QuestionAssignmentResponse])
def assign_questions(
    data: QuestionAssignmentRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: Profile = Depends(require_hr())
):
    """
    Assign questions to an employee for a cycle. Re-assigning an existing
    question reactivates it instead of duplicating it.
    """
    employee = db.get(Profile, data.employee_id)
    if not employee:
        raise HTTPException(status_code=404, detail="Employee not found")
    if db.get(AppraisalCycle, data.cycle_id) is None:
        raise HTTPException(status_code=404, detail="Appraisal cycle not found")
    questions = db.query(AppraisalQuestion).filter(AppraisalQuestion.id.in_(data.question_ids)).all()
    missing = set(data.question_ids) - {q.id for q in questions}
    if missing:
        raise HTTPException(status_code=404, detail=f"Questions not found: {sorted(missing)}")

    existing = {
        a.question_id: a for a in db.query(EmployeeQuestionAssignment).filter(
            EmployeeQuestionAssignment.employee_id == employee.id,
            EmployeeQuestionAssignment.cycle_id == data.cycle_id,
        )
    }
    assignments = []
    for question_id in dict.fromkeys(data.question_ids):
        assignment = existing.get(question_id)
        if assignment is None:
            assignment = EmployeeQuestionAssignment(
                employee_id=employee.id,
                question_id=question_id,
                cycle_id=data.cycle_id,
                assigned_by=current_user.id,
            )
            db.add(assignment)
        else:
            assignment.is_active = True
            assignment.deleted_at = None
        assignments.append(assignment)

    if employee.line_manager_id:
        NotificationService.notify_user(
            db, employee.line_manager_id, "Appraisal questions assigned",
            f"{len(assignments)} appraisal question(s) were assigned to {employee.full_name}.",
            type="appraisal", related_employee_id=employee.id,
        )
    db.commit()
    for assignment in assignments:
        db.refresh(assignment)
    schedule_pushes(background_tasks, db)
    return assignments


@router.get("/questions/assignments/{employee_id}", response_model=List[QuestionAssignmentResponse])
def list_assignments(
    employee_id: int,
    cycle_id: Optional[int] = None,
    db: Session = Depends(get_db),
    current_user: Profile = Depends(require_hr())
):
    query = db.query(EmployeeQuestionAssignment).filter(
        EmployeeQuestionAssignment.employee_id == employee_id,
        EmployeeQuestionAssignment.is_active == True  # noqa: E712
    )
    if cycle_id:
        query = query.filter(EmployeeQuestionAssignment.cycle_id == cycle_id)
    return query.all()


@router.delete("/questions/assignments/{assignment_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_assignment(
    assignment_id: int,
    db: Session = Depends(get_db),
    current_user: Profile = Depends(require_hr())
):
    assignment = db.get(EmployeeQuestionAssignment, assignment_id)
    if not assignment:
        raise HTTPException(status_code=404, detail="Assignment not found")
    assignment.is_active = False
    assignment.deleted_at = datetime.now(timezone.utc)
    db.commit()
