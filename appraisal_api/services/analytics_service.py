"""
Weighted performance analytics for a completed appraisal.

Runs after committee finalization as a background job. The committee's final
score is authoritative; analytics is a secondary, section-weighted view and
its failure never affects the appraisal itself.
"""
import logging
from collections import Counter
from typing import Callable, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from appraisal_api.database import SessionLocal
from appraisal_api.models.appraisal import Appraisal, AppraisalResponse, AppraisalStatus
from appraisal_api.models.performance_analytics import PerformanceAnalytics
from appraisal_api.models.question import AppraisalQuestion
from appraisal_api.services.base import BaseService, read_retry
from appraisal_api.services.scoring import (
    RATING_MAX, WeightedItem, noteworthy_bonus, performance_band, round_half_up,
    section_score, weighted_average,
)
from appraisal_api.services.sections import DEFAULT_SECTION, sort_section_names

logger = logging.getLogger(__name__)


def _response_score(response: AppraisalResponse) -> int:
    if response.mgr_rating is not None:
        return response.mgr_rating
    if response.emp_rating is not None:
        return response.emp_rating
    return 0


class AnalyticsService(BaseService):

    @read_retry
    def load_appraisal(self, appraisal_id: int) -> Optional[Appraisal]:
        return (
            self.db.query(Appraisal)
            .options(
                joinedload(Appraisal.responses)
                .joinedload(AppraisalResponse.question)
                .joinedload(AppraisalQuestion.section)
            )
            .filter(Appraisal.id == appraisal_id)
            .first()
        )

    @read_retry
    def get_for(self, employee_id: int, cycle_id: int) -> Optional[PerformanceAnalytics]:
        return self.db.query(PerformanceAnalytics).filter(
            PerformanceAnalytics.employee_id == employee_id,
            PerformanceAnalytics.cycle_id == cycle_id,
        ).first()

    def calculate_performance_score(self, appraisal: Appraisal) -> Optional[dict]:
        """
        Returns the overall score, band and per-section breakdown, or None when
        the appraisal has no responses.
        """
        if not appraisal.responses:
            return None

        sections: Dict[str, dict] = {}
        for response in appraisal.responses:
            question = response.question
            section = question.section if question is not None else None
            name = section.name if section is not None else DEFAULT_SECTION
            entry = sections.setdefault(name, {
                "section_id": section.id if section is not None else None,
                "section_name": name,
                "weight": section.weight if section is not None else 1,
                "items": [],
            })
            weight = question.weight if question is not None else None
            entry["items"].append(WeightedItem(_response_score(response), weight))

        results: List[dict] = []
        for name in sort_section_names(sections):
            entry = sections[name]
            items = entry.pop("items")
            entry["score"] = float(round_half_up(section_score(name, items), 2))
            entry["max_score"] = RATING_MAX * sum(i.weight for i in items)
            entry["is_noteworthy"] = False
            results.append(entry)

        base = weighted_average(results)
        bonus = noteworthy_bonus(results, appraisal.noteworthy)
        overall = float(round_half_up(min(100.0, base + bonus), 2))
        return {
            "overall_score": overall,
            "performance_band": performance_band(overall),
            "base_score": float(round_half_up(base, 2)),
            "noteworthy_bonus": float(round_half_up(bonus, 2)),
            "sections": results,
        }

    def save(self, appraisal: Appraisal, result: dict) -> PerformanceAnalytics:
        record = self.get_for(appraisal.employee_id, appraisal.cycle_id)
        if record is None:
            record = PerformanceAnalytics(employee_id=appraisal.employee_id, cycle_id=appraisal.cycle_id)
            self.db.add(record)
        record.overall_score = result["overall_score"]
        record.performance_band = result["performance_band"]
        record.section_scores = {
            "sections": result["sections"],
            "base_score": result["base_score"],
            "noteworthy_bonus": result["noteworthy_bonus"],
        }
        self.commit()
        return record

    def calculate_and_save(self, appraisal_id: int) -> Optional[PerformanceAnalytics]:
        appraisal = self.load_appraisal(appraisal_id)
        if appraisal is None:
            self.log_warning(f"Analytics skipped: appraisal {appraisal_id} not found")
            return None
        result = self.calculate_performance_score(appraisal)
        if result is None:
            self.log_warning(f"Analytics skipped: appraisal {appraisal_id} has no responses")
            return None
        record = self.save(appraisal, result)
        self.log_info(
            f"Analytics for appraisal {appraisal_id}: {result['overall_score']} ({result['performance_band']})"
        )
        return record

    @read_retry
    def dashboard(self, cycle_id: Optional[int] = None) -> dict:
        query = self.db.query(Appraisal)
        if cycle_id is not None:
            query = query.filter(Appraisal.cycle_id == cycle_id)

        by_status = dict(
            query.with_entities(Appraisal.status, func.count(Appraisal.id))
            .group_by(Appraisal.status)
            .all()
        )
        completed = query.filter(Appraisal.status == AppraisalStatus.COMPLETED.value).all()
        scores = [a.overall_score for a in completed if a.overall_score is not None]
        bands = Counter(a.performance_band for a in completed if a.performance_band)

        return {
            "total": sum(by_status.values()),
            "by_status": {s.value: by_status.get(s.value, 0) for s in AppraisalStatus},
            "average_score": float(round_half_up(sum(scores) / len(scores), 2)) if scores else None,
            "band_distribution": dict(bands),
        }


def run_analytics_job(appraisal_id: int, session_factory: Optional[Callable[[], Session]] = None):
    """
    Background entry point. Uses its own session and never raises.
    """
    db = (session_factory or SessionLocal)()
    try:
        AnalyticsService(db).calculate_and_save(appraisal_id)
    except Exception as e:
        logger.error(f"Analytics calculation failed for appraisal {appraisal_id}: {e}", exc_info=True)
    finally:
        db.close()
