"""
Appraisal workflow: the single source of truth for status transitions.

Every status change goes through `apply_transition`, which checks the
current status against the table below and the acting profile against the
roles allowed to perform the action.
"""
import enum
from datetime import datetime, timezone
from typing import Callable, Dict, FrozenSet, List, NamedTuple

from appraisal_api.core.exceptions import AccessDeniedError, InvalidTransitionError
from appraisal_api.models.appraisal import Appraisal, AppraisalStatus
from appraisal_api.models.profile import Profile, UserRole


class WorkflowAction(str, enum.Enum):
    EMPLOYEE_SUBMIT = "employee_submit"
    MANAGER_SUBMIT = "manager_submit"
    COMMITTEE_FINALIZE = "committee_finalize"
    COMMITTEE_FORWARD = "committee_forward"
    HR_FINALIZE = "hr_finalize"
    REOPEN = "reopen"


def _is_owner(actor: Profile, appraisal: Appraisal) -> bool:
    return actor.id == appraisal.employee_id


def _is_line_manager_or_hr(actor: Profile, appraisal: Appraisal) -> bool:
    if actor.is_hr:
        return True
    employee = appraisal.employee
    return (
        actor.role == UserRole.MANAGER
        and employee is not None
        and employee.line_manager_id == actor.id
    )


def _is_hr(actor: Profile, appraisal: Appraisal) -> bool:
    return actor.is_hr


def _is_admin(actor: Profile, appraisal: Appraisal) -> bool:
    return actor.role == UserRole.ADMIN


class Transition(NamedTuple):
    sources: FrozenSet[AppraisalStatus]
    target: AppraisalStatus
    permitted: Callable[[Profile, Appraisal], bool]
    actor_description: str


S = AppraisalStatus

TRANSITIONS: Dict[WorkflowAction, Transition] = {
    WorkflowAction.EMPLOYEE_SUBMIT: Transition(
        frozenset({S.DRAFT}), S.MANAGER_REVIEW, _is_owner, "the appraised employee"),
    WorkflowAction.MANAGER_SUBMIT: Transition(
        frozenset({S.SUBMITTED, S.MANAGER_REVIEW}), S.COMMITTEE_REVIEW, _is_line_manager_or_hr,
        "the employee's line manager or HR"),
    WorkflowAction.COMMITTEE_FINALIZE: Transition(
        frozenset({S.COMMITTEE_REVIEW}), S.COMPLETED, _is_hr, "the committee (HR or admin)"),
    WorkflowAction.COMMITTEE_FORWARD: Transition(
        frozenset({S.COMMITTEE_REVIEW}), S.HR_REVIEW, _is_hr, "the committee (HR or admin)"),
    WorkflowAction.HR_FINALIZE: Transition(
        frozenset({S.HR_REVIEW}), S.COMPLETED, _is_hr, "HR"),
    WorkflowAction.REOPEN: Transition(
        frozenset(set(S) - {S.DRAFT}), S.DRAFT, _is_admin, "an admin"),
}


def current_status(appraisal: Appraisal) -> AppraisalStatus:
    return AppraisalStatus(appraisal.status)


def can_transition(action: WorkflowAction, status: AppraisalStatus) -> bool:
    return AppraisalStatus(status) in TRANSITIONS[action].sources


def next_status(action: WorkflowAction, status: AppraisalStatus) -> AppraisalStatus:
    transition = TRANSITIONS[action]
    status = AppraisalStatus(status)
    if status not in transition.sources:
        raise InvalidTransitionError(
            action.value, status.value, sorted(s.value for s in transition.sources)
        )
    return transition.target


def _reviews_own(action: WorkflowAction, actor: Profile, appraisal: Appraisal) -> bool:
    # Only self-assessment may be done by the appraised employee
    return action != WorkflowAction.EMPLOYEE_SUBMIT and _is_owner(actor, appraisal)


def is_permitted(action: WorkflowAction, actor: Profile, appraisal: Appraisal) -> bool:
    return not _reviews_own(action, actor, appraisal) and TRANSITIONS[action].permitted(actor, appraisal)


def ensure_permitted(action: WorkflowAction, actor: Profile, appraisal: Appraisal):
    if _reviews_own(action, actor, appraisal):
        raise AccessDeniedError(f"You cannot perform '{action.value}' on your own appraisal")
    transition = TRANSITIONS[action]
    if not transition.permitted(actor, appraisal):
        raise AccessDeniedError(f"Only {transition.actor_description} can perform '{action.value}'")


def available_actions(appraisal: Appraisal, actor: Profile) -> List[WorkflowAction]:
    status = current_status(appraisal)
    return [
        action for action in TRANSITIONS
        if can_transition(action, status) and is_permitted(action, actor, appraisal)
    ]


def apply_transition(appraisal: Appraisal, action: WorkflowAction, actor: Profile) -> AppraisalStatus:
    """
    Move the appraisal along `action`, stamping the stage timestamps.
    Does not commit.
    """
    target = next_status(action, current_status(appraisal))
    ensure_permitted(action, actor, appraisal)

    now = datetime.now(timezone.utc)
    if action == WorkflowAction.EMPLOYEE_SUBMIT:
        appraisal.employee_submitted_at = now
    elif action == WorkflowAction.MANAGER_SUBMIT:
        appraisal.manager_reviewed_at = now
        appraisal.manager_reviewed_by = actor.id
    elif action in (WorkflowAction.COMMITTEE_FINALIZE, WorkflowAction.COMMITTEE_FORWARD):
        appraisal.committee_reviewed_at = now
        appraisal.committee_reviewed_by = actor.id
    elif action == WorkflowAction.HR_FINALIZE:
        appraisal.hr_finalized_at = now
        appraisal.hr_reviewer_id = actor.id
    elif action == WorkflowAction.REOPEN:
        appraisal.completed_at = None
        appraisal.overall_score = None
        appraisal.performance_band = None

    if target == AppraisalStatus.COMPLETED:
        appraisal.completed_at = now

    appraisal.status = target.value
    return target
