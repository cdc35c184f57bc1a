"""
Appraisal lifecycle: starting an appraisal, saving ratings per reviewer and
driving the workflow actions.

Each public operation validates everything it needs before touching the
session, then applies all row changes and commits once.
"""
from typing import Dict, Iterable, List, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session, joinedload

from appraisal_api.core.exceptions import (
    AccessDeniedError, NotFoundError, SubmissionLockedError, ValidationFailedError,
)
from appraisal_api.core.security import sanitize_input
from appraisal_api.models.appraisal import Appraisal, AppraisalResponse, AppraisalSettings, AppraisalStatus
from appraisal_api.models.appraisal_cycle import AppraisalCycle, CycleStatus
from appraisal_api.models.profile import Profile, UserRole
from appraisal_api.models.question import AppraisalQuestion, EmployeeQuestionAssignment
from appraisal_api.services.audit import AuditService
from appraisal_api.services.base import BaseService
from appraisal_api.services.notification_service import NotificationService
from appraisal_api.services.scoring import ScoringError, committee_final_score, performance_band, validate_rating
from appraisal_api.services.workflow import WorkflowAction, apply_transition, ensure_permitted, next_status

EMPLOYEE_EDITABLE = {AppraisalStatus.DRAFT}
MANAGER_EDITABLE = {AppraisalStatus.SUBMITTED, AppraisalStatus.MANAGER_REVIEW}


def get_settings(db: Session) -> AppraisalSettings:
    settings_row = db.query(AppraisalSettings).first()
    if settings_row is None:
        settings_row = AppraisalSettings(submission_locked=False, manager_submission_locked=False)
        db.add(settings_row)
        db.flush()
    return settings_row


def load_appraisal(db: Session, appraisal_id: int) -> Appraisal:
    appraisal = (
        db.query(Appraisal)
        .options(joinedload(Appraisal.responses).joinedload(AppraisalResponse.question))
        .filter(Appraisal.id == appraisal_id)
        .first()
    )
    if appraisal is None:
        raise NotFoundError("Appraisal", appraisal_id)
    return appraisal


def can_view(actor: Profile, appraisal: Appraisal) -> bool:
    if actor.is_hr or actor.id == appraisal.employee_id:
        return True
    employee = appraisal.employee
    return employee is not None and employee.line_manager_id == actor.id


class AppraisalService(BaseService):

    def __init__(self, db: Session, actor: Profile):
        super().__init__(db, actor)

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------
    def applicable_questions(self, employee: Profile, cycle: AppraisalCycle) -> List[AppraisalQuestion]:
        """
        Explicit assignments for the cycle win; otherwise every active
        question that applies to the employee's role and department.
        """
        assigned = (
            self.db.query(AppraisalQuestion)
            .join(EmployeeQuestionAssignment, EmployeeQuestionAssignment.question_id == AppraisalQuestion.id)
            .filter(
                EmployeeQuestionAssignment.employee_id == employee.id,
                EmployeeQuestionAssignment.cycle_id == cycle.id,
                EmployeeQuestionAssignment.is_active == True,  # noqa: E712
                AppraisalQuestion.is_active == True,  # noqa: E712
            )
            .order_by(AppraisalQuestion.sort_order, AppraisalQuestion.id)
            .all()
        )
        if assigned:
            return assigned

        candidates = (
            self.db.query(AppraisalQuestion)
            .filter(
                AppraisalQuestion.is_active == True,  # noqa: E712
                or_(AppraisalQuestion.cycle_id.is_(None), AppraisalQuestion.cycle_id == cycle.id),
            )
            .order_by(AppraisalQuestion.sort_order, AppraisalQuestion.id)
            .all()
        )
        return [q for q in candidates if q.applies_to(employee)]

    def start(self, employee: Profile, cycle_id: int) -> Appraisal:
        if self.actor.id != employee.id and not self.actor.is_hr:
            raise AccessDeniedError("You can only start your own appraisal")

        cycle = self.db.get(AppraisalCycle, cycle_id)
        if cycle is None:
            raise NotFoundError("Appraisal cycle", cycle_id)

        existing = self.db.query(Appraisal).filter(
            Appraisal.employee_id == employee.id,
            Appraisal.cycle_id == cycle.id,
        ).first()
        if existing:
            return existing

        if cycle.status != CycleStatus.ACTIVE.value:
            raise ValidationFailedError(f"Cycle '{cycle.name}' is not active")

        questions = self.applicable_questions(employee, cycle)
        if not questions:
            raise ValidationFailedError("No appraisal questions apply to this employee for the cycle")

        appraisal = Appraisal(
            employee_id=employee.id,
            cycle_id=cycle.id,
            manager_id=employee.line_manager_id,
            status=AppraisalStatus.DRAFT.value,
        )
        appraisal.responses = [AppraisalResponse(question_id=q.id) for q in questions]
        self.db.add(appraisal)
        self.db.flush()
        AuditService.log(
            self.db, "start_appraisal", "appraisal", appraisal.id, self.actor_id, self.actor.role,
            {"employee_id": employee.id, "cycle_id": cycle.id, "questions": len(questions)},
        )
        self.commit()
        self.db.refresh(appraisal)
        self.log_info(f"Appraisal {appraisal.id} started for employee {employee.id} in cycle {cycle.id}")
        return appraisal

    # ------------------------------------------------------------------
    # Saving ratings
    # ------------------------------------------------------------------
    def _check_staff_lock(self):
        if get_settings(self.db).submission_locked and not self.actor.is_hr:
            raise SubmissionLockedError()

    def _check_manager_lock(self):
        if get_settings(self.db).manager_submission_locked and not self.actor.is_hr:
            raise SubmissionLockedError("Manager submissions are currently locked by HR")

    def _responses_by_question(self, appraisal: Appraisal) -> Dict[int, AppraisalResponse]:
        return {r.question_id: r for r in appraisal.responses}

    def _validate_answers(self, appraisal: Appraisal, answers: Iterable) -> list:
        by_question = self._responses_by_question(appraisal)
        validated = []
        for answer in answers:
            response = by_question.get(answer.question_id)
            if response is None:
                raise ValidationFailedError(
                    f"Question {answer.question_id} is not part of appraisal {appraisal.id}"
                )
            if answer.rating is not None:
                try:
                    validate_rating(answer.rating)
                except ScoringError as e:
                    raise ValidationFailedError(str(e))
            validated.append((response, answer))
        return validated

    def save_employee_responses(self, appraisal: Appraisal, answers, extras: Optional[dict] = None) -> Appraisal:
        if self.actor.id != appraisal.employee_id:
            raise AccessDeniedError("Only the appraised employee can edit self-assessment answers")
        if AppraisalStatus(appraisal.status) not in EMPLOYEE_EDITABLE:
            raise ValidationFailedError("Self-assessment can only be edited while the appraisal is a draft")
        self._check_staff_lock()

        for response, answer in self._validate_answers(appraisal, answers):
            response.emp_rating = answer.rating
            response.emp_comment = sanitize_input(answer.comment)
        for field in ("emp_comments", "goals", "training_needs", "noteworthy"):
            if extras and extras.get(field) is not None:
                setattr(appraisal, field, sanitize_input(extras[field]))
        self.commit()
        return appraisal

    def save_manager_responses(self, appraisal: Appraisal, answers, mgr_comments: Optional[str] = None) -> Appraisal:
        ensure_permitted(WorkflowAction.MANAGER_SUBMIT, self.actor, appraisal)
        if AppraisalStatus(appraisal.status) not in MANAGER_EDITABLE:
            raise ValidationFailedError("Manager ratings can only be edited while the appraisal awaits manager review")

        for response, answer in self._validate_answers(appraisal, answers):
            response.mgr_rating = answer.rating
            response.mgr_comment = sanitize_input(answer.comment)
        if mgr_comments is not None:
            appraisal.mgr_comments = sanitize_input(mgr_comments)
        if appraisal.manager_id is None:
            appraisal.manager_id = self.actor.id
        self.commit()
        return appraisal

    @staticmethod
    def _missing_required(appraisal: Appraisal, field: str) -> List[int]:
        return [
            r.question_id for r in appraisal.responses
            if r.question is not None and r.question.is_rating and r.question.is_required
            and getattr(r, field) is None
        ]

    # ------------------------------------------------------------------
    # Workflow actions
    # ------------------------------------------------------------------
    def _snapshot(self, appraisal: Appraisal) -> dict:
        return {
            "status": appraisal.status,
            "overall_score": appraisal.overall_score,
            "performance_band": appraisal.performance_band,
        }

    def _transition(self, appraisal: Appraisal, action: WorkflowAction, details: Optional[dict] = None):
        before = self._snapshot(appraisal)
        apply_transition(appraisal, action, self.actor)
        AuditService.log(
            self.db, action.value, "appraisal", appraisal.id, self.actor_id, self.actor.role,
            details or {}, before_state=before, after_state=self._snapshot(appraisal),
        )

    def employee_submit(self, appraisal: Appraisal) -> Appraisal:
        next_status(WorkflowAction.EMPLOYEE_SUBMIT, appraisal.status)
        ensure_permitted(WorkflowAction.EMPLOYEE_SUBMIT, self.actor, appraisal)
        self._check_staff_lock()
        missing = self._missing_required(appraisal, "emp_rating")
        if missing:
            raise ValidationFailedError("All required questions must be rated before submitting",
                                        details={"missing_question_ids": missing})

        self._transition(appraisal, WorkflowAction.EMPLOYEE_SUBMIT)
        employee = appraisal.employee
        if employee is not None and employee.line_manager_id:
            NotificationService.notify_user(
                self.db, employee.line_manager_id,
                "Appraisal submitted for review",
                f"{employee.full_name} has submitted their appraisal and is awaiting your review.",
                type="appraisal", related_appraisal_id=appraisal.id, related_employee_id=employee.id,
            )
        self.commit()
        self.log_info(f"Appraisal {appraisal.id} submitted by employee {self.actor_id}")
        return appraisal

    def manager_submit(self, appraisal: Appraisal) -> Appraisal:
        next_status(WorkflowAction.MANAGER_SUBMIT, appraisal.status)
        ensure_permitted(WorkflowAction.MANAGER_SUBMIT, self.actor, appraisal)
        self._check_manager_lock()
        missing = self._missing_required(appraisal, "mgr_rating")
        if missing:
            raise ValidationFailedError("All required questions must be rated before submitting",
                                        details={"missing_question_ids": missing})

        self._transition(appraisal, WorkflowAction.MANAGER_SUBMIT)
        employee = appraisal.employee
        name = employee.full_name if employee is not None else f"employee {appraisal.employee_id}"
        NotificationService.notify_hr(
            self.db, "Appraisal ready for committee",
            f"The manager review for {name} is complete.",
            type="appraisal", related_appraisal_id=appraisal.id, related_employee_id=appraisal.employee_id,
        )
        self.commit()
        return appraisal

    def _merge_committee_scores(self, appraisal: Appraisal, scores) -> Dict[int, tuple]:
        """
        Returns {response_id: (rating, comment)} for the submitted scores after
        validating them. Nothing is written.
        """
        by_id = {r.id: r for r in appraisal.responses}
        merged = {}
        for score in scores:
            if score.response_id not in by_id:
                raise ValidationFailedError(
                    f"Response {score.response_id} does not belong to appraisal {appraisal.id}"
                )
            try:
                validate_rating(score.rating)
            except ScoringError as e:
                raise ValidationFailedError(str(e))
            merged[score.response_id] = (score.rating, score.comment)
        return merged

    def _apply_committee_scores(self, appraisal: Appraisal, merged: Dict[int, tuple], comments: Optional[str]):
        for response in appraisal.responses:
            if response.id in merged:
                rating, comment = merged[response.id]
                response.committee_rating = rating
                response.committee_comment = sanitize_input(comment if comment is not None else comments)
        if comments is not None:
            appraisal.committee_comments = sanitize_input(comments)

    def _final_ratings(self, appraisal: Appraisal, merged: Dict[int, tuple]) -> List[int]:
        effective = {
            r.id: merged[r.id][0] if r.id in merged else r.committee_rating
            for r in appraisal.responses
        }
        missing = [
            r.question_id for r in appraisal.responses
            if r.question is not None and r.question.is_rating and effective[r.id] is None
        ]
        if missing:
            raise ValidationFailedError(
                "Every rated question needs a committee score before the appraisal can be completed",
                details={"missing_question_ids": missing},
            )
        return [rating for rating in effective.values() if rating is not None]

    def _score(self, ratings: List[int]) -> int:
        try:
            return committee_final_score(ratings)
        except ScoringError as e:
            raise ValidationFailedError(str(e))

    def committee_finalize(self, appraisal: Appraisal, scores, comments: Optional[str] = None) -> Appraisal:
        next_status(WorkflowAction.COMMITTEE_FINALIZE, appraisal.status)
        ensure_permitted(WorkflowAction.COMMITTEE_FINALIZE, self.actor, appraisal)
        merged = self._merge_committee_scores(appraisal, scores)
        final_score = self._score(self._final_ratings(appraisal, merged))

        self._apply_committee_scores(appraisal, merged, comments)
        appraisal.overall_score = final_score
        appraisal.performance_band = performance_band(final_score)
        self._transition(appraisal, WorkflowAction.COMMITTEE_FINALIZE,
                         {"final_score": final_score, "rated_responses": len(merged)})
        NotificationService.notify_user(
            self.db, appraisal.employee_id, "Appraisal completed",
            f"Your appraisal has been finalized with a score of {final_score}/100 ({appraisal.performance_band}).",
            type="appraisal", related_appraisal_id=appraisal.id,
        )
        self.commit()
        self.log_info(f"Appraisal {appraisal.id} finalized by committee: {final_score} ({appraisal.performance_band})")
        return appraisal

    def committee_forward(self, appraisal: Appraisal, scores, comments: Optional[str] = None) -> Appraisal:
        next_status(WorkflowAction.COMMITTEE_FORWARD, appraisal.status)
        ensure_permitted(WorkflowAction.COMMITTEE_FORWARD, self.actor, appraisal)
        merged = self._merge_committee_scores(appraisal, scores)

        self._apply_committee_scores(appraisal, merged, comments)
        self._transition(appraisal, WorkflowAction.COMMITTEE_FORWARD, {"rated_responses": len(merged)})
        NotificationService.notify_hr(
            self.db, "Appraisal awaiting HR review",
            "The committee has reviewed an appraisal and forwarded it to HR.",
            type="appraisal", related_appraisal_id=appraisal.id, related_employee_id=appraisal.employee_id,
        )
        self.commit()
        return appraisal

    def hr_finalize(self, appraisal: Appraisal) -> Appraisal:
        next_status(WorkflowAction.HR_FINALIZE, appraisal.status)
        ensure_permitted(WorkflowAction.HR_FINALIZE, self.actor, appraisal)
        final_score = self._score(self._final_ratings(appraisal, {}))

        if appraisal.overall_score is None:
            appraisal.overall_score = final_score
            appraisal.performance_band = performance_band(final_score)
        self._transition(appraisal, WorkflowAction.HR_FINALIZE, {"final_score": appraisal.overall_score})
        NotificationService.notify_user(
            self.db, appraisal.employee_id, "Appraisal completed",
            f"Your appraisal has been finalized with a score of {appraisal.overall_score:g}/100 ({appraisal.performance_band}).",
            type="appraisal", related_appraisal_id=appraisal.id,
        )
        self.commit()
        return appraisal

    def reopen(self, appraisal: Appraisal) -> Appraisal:
        self._transition(appraisal, WorkflowAction.REOPEN)
        self.commit()
        return appraisal

    def delete(self, appraisal: Appraisal):
        if self.actor.role != UserRole.ADMIN:
            raise AccessDeniedError("Only admins can delete appraisals")
        AuditService.log(
            self.db, "delete_appraisal", "appraisal", appraisal.id, self.actor_id, self.actor.role,
            {"employee_id": appraisal.employee_id, "cycle_id": appraisal.cycle_id},
            before_state=self._snapshot(appraisal),
        )
        self.db.delete(appraisal)
        self.commit()
