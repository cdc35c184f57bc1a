"""
Append-only audit trail for workflow transitions and admin changes.
"""
import enum
from datetime import date, datetime
from typing import Any, List, Optional

from appraisal_api.models.audit_log import AuditLog
from appraisal_api.services.base import BaseService

MAX_PAGE = 500


def to_jsonable(value: Any) -> Any:
    """Makes snapshots safe for the JSON columns."""
    if hasattr(value, "model_dump"):
        return value.model_dump(mode="json")
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, dict):
        return {str(k): to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [to_jsonable(v) for v in value]
    return value


class AuditService(BaseService):
    def log_action(
        self,
        action: str,
        entity_type: str,
        entity_id: Optional[int],
        user_id: Optional[int],
        user_role: Any,
        details: Optional[dict] = None,
        before_state: Optional[dict] = None,
        after_state: Optional[dict] = None
    ) -> AuditLog:
        """
        Adds the entry to the caller's transaction so it is committed, or
        rolled back, together with the change it records. A failed flush
        propagates; the caller's commit path rolls the session back.
        """
        entry = AuditLog(
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            user_id=user_id,
            user_role=to_jsonable(user_role),
            details=to_jsonable(details or {}),
            before_state=to_jsonable(before_state),
            after_state=to_jsonable(after_state),
        )
        self.db.add(entry)
        self.db.flush()
        return entry

    def recent(self, entity_type: Optional[str] = None, entity_id: Optional[int] = None,
               limit: int = 100) -> List[AuditLog]:
        query = self.db.query(AuditLog)
        if entity_type:
            query = query.filter(AuditLog.entity_type == entity_type)
        if entity_id is not None:
            query = query.filter(AuditLog.entity_id == entity_id)
        return query.order_by(AuditLog.id.desc()).limit(max(1, min(limit, MAX_PAGE))).all()

    # For call sites that only hold a session
    @staticmethod
    def log(db, *args, **kwargs) -> AuditLog:
        return AuditService(db).log_action(*args, **kwargs)
