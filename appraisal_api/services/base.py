import logging
from typing import Optional

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session
from tenacity import retry, stop_after_attempt, wait_fixed, retry_if_exception_type

from appraisal_api.core.config import settings

# Reads only: writes are never retried.
read_retry = retry(
    stop=stop_after_attempt(settings.read_retry_attempts),
    wait=wait_fixed(settings.read_retry_delay_seconds),
    retry=retry_if_exception_type(OperationalError),
    reraise=True,
)


class BaseService:
    """
    Common plumbing for services that own a DB session.
    """

    def __init__(self, db: Session, actor=None):
        self.db = db
        self.actor = actor
        self._logger = logging.getLogger(self.__class__.__module__)

    @property
    def actor_id(self) -> Optional[int]:
        return self.actor.id if self.actor is not None else None

    def log_info(self, message: str, **extra):
        self._logger.info(message, extra=extra or None)

    def log_warning(self, message: str, **extra):
        self._logger.warning(message, extra=extra or None)

    def commit(self):
        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
