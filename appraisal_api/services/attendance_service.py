"""
Clock-in/out with lateness detection, the auto clock-out of forgotten logs
and the daily charge run.

Attendance times are naive local wall-clock datetimes.
"""
from datetime import date, datetime, time
from decimal import Decimal
from typing import List, Optional

from appraisal_api.core.exceptions import NotFoundError, ValidationFailedError
from appraisal_api.models.attendance import AttendanceCharge, AttendanceLog, AttendanceRule
from appraisal_api.models.profile import Profile, UserRole
from appraisal_api.services.base import BaseService
from appraisal_api.services.notification_service import NotificationService
from appraisal_api.services.scoring import round_half_up

CHARGE_LATE = "late"
CHARGE_ABSENCE = "absence"
LOCATION_TYPES = ("office", "field")
DEFAULT_WORK_END = time(17, 0)


def lateness_minutes(clock_in: datetime, work_start) -> int:
    """Whole minutes after the rule's start time; 0 when on time."""
    start = datetime.combine(clock_in.date(), work_start)
    if clock_in <= start:
        return 0
    return int((clock_in - start).total_seconds() // 60)


def hours_between(start: datetime, end: datetime) -> float:
    seconds = Decimal(str((end - start).total_seconds()))
    return float(round_half_up(seconds / Decimal(3600), 2))


class AttendanceService(BaseService):

    def active_rule(self) -> Optional[AttendanceRule]:
        return (
            self.db.query(AttendanceRule)
            .filter(AttendanceRule.is_active == True)  # noqa: E712
            .order_by(AttendanceRule.id.desc())
            .first()
        )

    def open_log(self, employee_id: int, work_date: date) -> Optional[AttendanceLog]:
        return self.db.query(AttendanceLog).filter(
            AttendanceLog.employee_id == employee_id,
            AttendanceLog.work_date == work_date,
            AttendanceLog.clock_out_time.is_(None),
        ).first()

    def stale_open_logs(self, before: date, employee_id: Optional[int] = None) -> List[AttendanceLog]:
        query = self.db.query(AttendanceLog).filter(
            AttendanceLog.work_date < before,
            AttendanceLog.clock_out_time.is_(None),
        )
        if employee_id is not None:
            query = query.filter(AttendanceLog.employee_id == employee_id)
        return query.order_by(AttendanceLog.work_date, AttendanceLog.id).all()

    def _close_at_end_of_day(self, log: AttendanceLog, rule: Optional[AttendanceRule]):
        end = datetime.combine(log.work_date, rule.work_end_time if rule else DEFAULT_WORK_END)
        log.clock_out_time = max(end, log.clock_in_time)
        log.total_hours = hours_between(log.clock_in_time, log.clock_out_time)
        log.auto_clocked_out = True
        NotificationService.create_notification(
            self.db, log.employee_id, "Auto clocked out",
            f"You did not clock out on {log.work_date.isoformat()}; you were clocked out at {end:%H:%M}.",
            type="auto_clock_out",
        )

    def auto_clock_out(self, run_date: Optional[date] = None) -> List[AttendanceLog]:
        """
        Closes every log still open from a day before run_date at that
        day's work end time. Logs from run_date itself are left open.
        """
        run_date = run_date or date.today()
        rule = self.active_rule()
        stale = self.stale_open_logs(run_date)
        for log in stale:
            self._close_at_end_of_day(log, rule)
        self.commit()
        self.log_info(f"Auto clock-out before {run_date.isoformat()}: {len(stale)} log(s) closed")
        return stale

    def clock_in(self, employee: Profile, location_type: str = "office",
                 field_work_reason: Optional[str] = None, now: Optional[datetime] = None) -> AttendanceLog:
        if location_type not in LOCATION_TYPES:
            raise ValidationFailedError(f"location_type must be one of {', '.join(LOCATION_TYPES)}")
        if location_type == "field" and not field_work_reason:
            raise ValidationFailedError("A reason is required for field work")
        now = now or datetime.now()
        if self.open_log(employee.id, now.date()) is not None:
            raise ValidationFailedError("You are already clocked in")

        rule = self.active_rule()
        # A forgotten clock-out from an earlier day is closed before the new log opens
        for stale in self.stale_open_logs(now.date(), employee.id):
            self._close_at_end_of_day(stale, rule)
        late_by = lateness_minutes(now, rule.work_start_time) if rule else 0
        log = AttendanceLog(
            employee_id=employee.id,
            work_date=now.date(),
            clock_in_time=now,
            location_type=location_type,
            field_work_reason=field_work_reason,
            is_late=late_by > 0,
            late_by_minutes=late_by,
        )
        self.db.add(log)
        self.commit()
        self.db.refresh(log)
        if log.is_late:
            self.log_info(f"Employee {employee.id} clocked in {late_by} minutes late")
        return log

    def clock_out(self, employee: Profile, now: Optional[datetime] = None) -> AttendanceLog:
        now = now or datetime.now()
        log = self.open_log(employee.id, now.date())
        if log is None:
            raise NotFoundError("Open attendance log")
        if now < log.clock_in_time:
            raise ValidationFailedError("Clock-out cannot be before clock-in")
        log.clock_out_time = now
        log.total_hours = hours_between(log.clock_in_time, now)
        self.commit()
        return log

    def _charge_exists(self, employee_id: int, charge_date: date, charge_type: str) -> bool:
        return self.db.query(AttendanceCharge.id).filter(
            AttendanceCharge.employee_id == employee_id,
            AttendanceCharge.charge_date == charge_date,
            AttendanceCharge.charge_type == charge_type,
        ).first() is not None

    def calculate_daily_charges(self, charge_date: date) -> List[AttendanceCharge]:
        """
        Late charges for logs beyond the grace period, absence charges for
        active staff with no log. Re-running for the same day adds nothing.
        """
        rule = self.active_rule()
        if rule is None:
            raise ValidationFailedError("No active attendance rule configured")

        created: List[AttendanceCharge] = []
        logs = self.db.query(AttendanceLog).filter(AttendanceLog.work_date == charge_date).all()
        present = set()
        for log in logs:
            present.add(log.employee_id)
            if (log.late_by_minutes or 0) > rule.grace_period_minutes and rule.late_charge_amount > 0:
                if not self._charge_exists(log.employee_id, charge_date, CHARGE_LATE):
                    created.append(AttendanceCharge(
                        employee_id=log.employee_id, attendance_log_id=log.id,
                        charge_date=charge_date, charge_type=CHARGE_LATE, amount=rule.late_charge_amount,
                    ))

        # Saturday and Sunday are not working days
        if charge_date.weekday() < 5 and rule.absence_charge_amount > 0:
            staff = self.db.query(Profile).filter(
                Profile.role == UserRole.STAFF,
                Profile.is_active == True,  # noqa: E712
            ).all()
            for member in staff:
                if member.id in present or self._charge_exists(member.id, charge_date, CHARGE_ABSENCE):
                    continue
                created.append(AttendanceCharge(
                    employee_id=member.id, charge_date=charge_date,
                    charge_type=CHARGE_ABSENCE, amount=rule.absence_charge_amount,
                ))

        self.db.add_all(created)
        self.commit()
        self.log_info(f"Daily charges for {charge_date.isoformat()}: {len(created)} created")
        return created
