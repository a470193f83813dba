import logging
from contextlib import contextmanager
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from headoffice.core.exceptions import AppException, InternalError, ValidationError


class BaseService:
    """
    Tenant-scoped service base.

    Multi-row writes run inside `transaction()`; domain events queued with
    `publish()` are only handed to the dispatcher after a successful commit.
    Services invoked from inside another service's transaction share its
    event queue (pass `events=parent.events`).
    """

    def __init__(self, db: Session, tenant_id: int, dispatcher=None, events: Optional[List] = None):
        if tenant_id is None:
            raise ValueError(f"{self.__class__.__name__} requires an explicit tenant_id")
        self.db = db
        self.tenant_id = tenant_id
        self.dispatcher = dispatcher
        self.events = events if events is not None else []
        self._logger = logging.getLogger(self.__class__.__module__)

    def log_warning(self, message: str, **extra):
        self._logger.warning(message, extra={"tenant_id": self.tenant_id, **extra})

    def publish(self, event) -> None:
        self.events.append(event)

    @contextmanager
    def transaction(self, operation: str):
        try:
            yield
            self.db.commit()
        except AppException:
            self.db.rollback()
            self.events.clear()
            raise
        except SQLAlchemyError as e:
            self.db.rollback()
            self.events.clear()
            self._logger.error(f"Failed to {operation}: {e}", exc_info=True, extra={"tenant_id": self.tenant_id})
            raise InternalError(f"Failed to {operation}") from e
        self.dispatch_pending()

    def dispatch_pending(self) -> None:
        if not self.events:
            return
        pending = list(self.events)
        self.events.clear()
        if self.dispatcher is None:
            from headoffice.services.events import EventDispatcher
            self.dispatcher = EventDispatcher(self.db)
        self.dispatcher.dispatch(pending)


def parse_enum(enum_cls, value, message: str):
    """Coerce `value` to `enum_cls`, raising ValidationError(message) if it is not a member."""
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        raise ValidationError(message)
