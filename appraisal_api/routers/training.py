from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status
from sqlalchemy.orm import Session
from typing import List, Optional

from appraisal_api.database import get_db
from appraisal_api.models.profile import Profile
from appraisal_api.models.training import QuizQuestion, Training, TrainingAssignment, TrainingRequest
from appraisal_api.routers.auth_deps import get_current_user, require_hr, require_manager
from appraisal_api.schemas.training import (
    ApproveTrainingRequest, AssignmentResponse, QuizAttemptResponse, QuizQuestionCreate, QuizQuestionResponse,
    QuizSubmission, TrainingCreate, TrainingRequestCreate, TrainingRequestResponse, TrainingResponse, TrainingUpdate,
)
from appraisal_api.services.notification_service import schedule_pushes
from appraisal_api.services.training_service import TrainingService

router = APIRouter(prefix="/training", tags=["Training"])


def _training_or_404(db: Session, training_id: int) -> Training:
    training = db.get(Training, training_id)
    if not training or not training.is_active:
        raise HTTPException(status_code=404, detail="Training not found")
    return training


# --- Catalogue ---

@router.get("/", response_model=List[TrainingResponse])
def list_trainings(
    db: Session = Depends(get_db),
    current_user: Profile = Depends(get_current_user)
):
    return db.query(Training).filter(Training.is_active == True).order_by(Training.title).all()  # noqa: E712


@router.post("/", response_model=TrainingResponse, status_code=status.HTTP_201_CREATED)
def create_training(
    data: TrainingCreate,
    db: Session = Depends(get_db),
    current_user: Profile = Depends(require_hr())
):
    training = Training(**data.model_dump(), created_by=current_user.id)
    db.add(training)
    db.commit()
    db.refresh(training)
    return training


@router.patch("/{training_id}", response_model=TrainingResponse)
def update_training(
    training_id: int,
    data: TrainingUpdate,
    db: Session = Depends(get_db),
    current_user: Profile = Depends(require_hr())
):
    training = _training_or_404(db, training_id)
    for key, value in data.model_dump(exclude_unset=True).items():
        setattr(training, key, value)
    db.commit()
    db.refresh(training)
    return training


@router.delete("/{training_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_training(
    training_id: int,
    db: Session = Depends(get_db),
    current_user: Profile = Depends(require_hr())
):
    training = _training_or_404(db, training_id)
    training.is_active = False
    db.commit()


@router.get("/{training_id}/quiz", response_model=List[QuizQuestionResponse])
def get_quiz(
    training_id: int,
    db: Session = Depends(get_db),
    current_user: Profile = Depends(get_current_user)
):
    return _training_or_404(db, training_id).quiz_questions


@router.post("/{training_id}/quiz", response_model=QuizQuestionResponse, status_code=status.HTTP_201_CREATED)
def add_quiz_question(
    training_id: int,
    data: QuizQuestionCreate,
    db: Session = Depends(get_db),
    current_user: Profile = Depends(require_hr())
):
    training = _training_or_404(db, training_id)
    question = QuizQuestion(training_id=training.id, **data.model_dump())
    db.add(question)
    db.commit()
    db.refresh(question)
    return question


# --- Requests ---

@router.post("/requests", response_model=TrainingRequestResponse, status_code=status.HTTP_201_CREATED)
def create_training_request(
    data: TrainingRequestCreate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: Profile = Depends(get_current_user)
):
    """Staff request training for themselves; managers and HR may request it for others."""
    employee_id = data.employee_id or current_user.id
    if employee_id != current_user.id:
        if not current_user.is_manager:
            raise HTTPException(status_code=403, detail="You can only request training for yourself")
        if db.get(Profile, employee_id) is None:
            raise HTTPException(status_code=404, detail="Employee not found")
    training_request = TrainingService(db, current_user).create_request(
        employee_id, data.justification, data.recommended_training_type
    )
    schedule_pushes(background_tasks, db)
    return training_request


@router.get("/requests", response_model=List[TrainingRequestResponse])
def list_training_requests(
    status_filter: Optional[str] = None,
    db: Session = Depends(get_db),
    current_user: Profile = Depends(require_manager())
):
    query = db.query(TrainingRequest)
    if not current_user.is_hr:
        query = query.filter(TrainingRequest.requested_by == current_user.id)
    if status_filter:
        query = query.filter(TrainingRequest.status == status_filter)
    return query.order_by(TrainingRequest.id.desc()).all()


@router.post("/requests/{request_id}/approve", response_model=AssignmentResponse)
def approve_training_request(
    request_id: int,
    data: ApproveTrainingRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: Profile = Depends(require_hr())
):
    assignment = TrainingService(db, current_user).approve_request(request_id, data.training_id)
    schedule_pushes(background_tasks, db)
    return assignment


@router.post("/requests/{request_id}/reject", response_model=TrainingRequestResponse)
def reject_training_request(
    request_id: int,
    db: Session = Depends(get_db),
    current_user: Profile = Depends(require_hr())
):
    return TrainingService(db, current_user).reject_request(request_id)


# --- Assignments & quizzes ---

@router.get("/assignments/my", response_model=List[AssignmentResponse])
def my_assignments(
    db: Session = Depends(get_db),
    current_user: Profile = Depends(get_current_user)
):
    return db.query(TrainingAssignment).filter(
        TrainingAssignment.employee_id == current_user.id
    ).order_by(TrainingAssignment.due_date).all()


@router.post("/assignments/{assignment_id}/attempts", response_model=QuizAttemptResponse,
             status_code=status.HTTP_201_CREATED)
def submit_quiz_attempt(
    assignment_id: int,
    data: QuizSubmission,
    db: Session = Depends(get_db),
    current_user: Profile = Depends(get_current_user)
):
    return TrainingService(db, current_user).submit_attempt(assignment_id, data.answers)
