"""
Training requests, assignments and quiz grading.
"""
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Dict, Optional

from appraisal_api.core.exceptions import AccessDeniedError, NotFoundError, ValidationFailedError
from appraisal_api.core.security import sanitize_input
from appraisal_api.models.training import (
    AssignmentStatus, QuizAttempt, Training, TrainingAssignment, TrainingRequest, TrainingRequestStatus,
)
from appraisal_api.services.audit import AuditService
from appraisal_api.services.base import BaseService
from appraisal_api.services.notification_service import NotificationService
from appraisal_api.services.scoring import round_half_up

ASSIGNMENT_DUE_DAYS = 30


def grade_quiz(questions, answers: Dict[int, str]) -> int:
    """Percentage of quiz points earned, rounded half-up. Empty quizzes score 0."""
    total = sum(q.points for q in questions)
    if total == 0:
        return 0
    earned = sum(
        q.points for q in questions
        if str(answers.get(q.id, "")).strip().lower() == str(q.correct_answer).strip().lower()
    )
    return int(round_half_up(Decimal(100 * earned) / Decimal(total)))


class TrainingService(BaseService):

    def create_request(self, employee_id: int, justification: str,
                       recommended_training_type: Optional[str] = None) -> TrainingRequest:
        request = TrainingRequest(
            employee_id=employee_id,
            requested_by=self.actor_id,
            justification=sanitize_input(justification),
            recommended_training_type=recommended_training_type,
            status=TrainingRequestStatus.PENDING.value,
        )
        self.db.add(request)
        self.db.flush()
        NotificationService.notify_hr(
            self.db, "New training request",
            f"A training request was raised for employee {employee_id}.",
            type="training", related_employee_id=employee_id,
        )
        self.commit()
        self.db.refresh(request)
        return request

    def _pending(self, request_id: int) -> TrainingRequest:
        request = self.db.get(TrainingRequest, request_id)
        if request is None:
            raise NotFoundError("Training request", request_id)
        if request.status != TrainingRequestStatus.PENDING.value:
            raise ValidationFailedError(f"Training request {request_id} has already been {request.status}")
        return request

    def approve_request(self, request_id: int, training_id: int) -> TrainingAssignment:
        request = self._pending(request_id)
        training = self.db.get(Training, training_id)
        if training is None or not training.is_active:
            raise NotFoundError("Training", training_id)

        now = datetime.now(timezone.utc)
        request.status = TrainingRequestStatus.APPROVED.value
        request.processed_by = self.actor_id
        request.processed_at = now
        assignment = TrainingAssignment(
            employee_id=request.employee_id,
            training_id=training.id,
            request_id=request.id,
            assigned_by=self.actor_id,
            due_date=now + timedelta(days=ASSIGNMENT_DUE_DAYS),
            status=AssignmentStatus.ASSIGNED.value,
        )
        self.db.add(assignment)
        self.db.flush()
        NotificationService.notify_user(
            self.db, request.employee_id, "Training assigned",
            f"You have been assigned '{training.title}'. Complete it within {ASSIGNMENT_DUE_DAYS} days.",
            type="training",
        )
        AuditService.log(
            self.db, "approve_training_request", "training_request", request.id,
            self.actor_id, self.actor.role if self.actor else None,
            {"training_id": training.id, "assignment_id": assignment.id},
        )
        self.commit()
        self.db.refresh(assignment)
        return assignment

    def reject_request(self, request_id: int) -> TrainingRequest:
        request = self._pending(request_id)
        request.status = TrainingRequestStatus.REJECTED.value
        request.processed_by = self.actor_id
        request.processed_at = datetime.now(timezone.utc)
        self.commit()
        return request

    def submit_attempt(self, assignment_id: int, answers: Dict[int, str]) -> QuizAttempt:
        assignment = self.db.get(TrainingAssignment, assignment_id)
        if assignment is None:
            raise NotFoundError("Training assignment", assignment_id)
        if assignment.employee_id != self.actor_id:
            raise AccessDeniedError("You can only take quizzes assigned to you")
        if assignment.status == AssignmentStatus.COMPLETED.value:
            raise ValidationFailedError("This training has already been completed")

        training = assignment.training
        if len(assignment.attempts) >= training.max_attempts:
            raise ValidationFailedError(
                f"Maximum of {training.max_attempts} quiz attempts reached",
                details={"max_attempts": training.max_attempts},
            )

        score = grade_quiz(training.quiz_questions, answers)
        passed = score >= training.pass_mark
        attempt = QuizAttempt(
            assignment_id=assignment.id,
            attempt_number=len(assignment.attempts) + 1,
            score_percentage=score,
            passed=passed,
            answers={str(k): v for k, v in answers.items()},
        )
        assignment.attempts.append(attempt)
        assignment.status = AssignmentStatus.COMPLETED.value if passed else AssignmentStatus.IN_PROGRESS.value
        self.commit()
        self.log_info(f"Quiz attempt {attempt.attempt_number} on assignment {assignment.id}: {score}% passed={passed}")
        return attempt
