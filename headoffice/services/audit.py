from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from sqlalchemy.exc import SQLAlchemyError

from headoffice.core.logging import request_id_var
from headoffice.models.audit_log import AuditLog
from headoffice.services.base import BaseService


def _sanitize(obj: Any) -> Any:
    """Make nested payloads JSON-safe."""
    if hasattr(obj, "model_dump"):
        return _sanitize(obj.model_dump())
    if isinstance(obj, dict):
        return {k: _sanitize(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_sanitize(i) for i in obj]
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, (date, datetime)):
        return obj.isoformat()
    if isinstance(obj, Decimal):
        return float(obj)
    return obj


class AuditService(BaseService):
    def log_action(
        self,
        action: str,
        entity_type: str,
        entity_id: Optional[int],
        user_id: Optional[int],
        user_role: Optional[str],
        details: Optional[dict] = None,
        description: Optional[str] = None,
        before_state: Optional[dict] = None,
        after_state: Optional[dict] = None
    ) -> Optional[AuditLog]:
        """
        Append an audit entry inside the caller's transaction.

        The insert runs in a SAVEPOINT: if it fails, only the audit row is
        rolled back, the failure is logged, and the business operation
        carries on.
        """
        entry = AuditLog(
            tenant_id=self.tenant_id,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            user_id=user_id,
            user_role=user_role,
            description=description,
            details=_sanitize(details),
            before_state=_sanitize(before_state),
            after_state=_sanitize(after_state),
            request_id=request_id_var.get() or None,
        )
        try:
            with self.db.begin_nested():
                self.db.add(entry)
            return entry
        except SQLAlchemyError as e:
            self._logger.error(f"FAILED TO AUDIT LOG: {e}", exc_info=True, extra={"tenant_id": self.tenant_id})
            return None

    def _record(self, verb, actor, resource_type, resource_id, description, payload, before_state=None):
        return self.log_action(
            action=f"{resource_type}_{verb}",
            entity_type=resource_type,
            entity_id=resource_id,
            user_id=getattr(actor, "id", None),
            user_role=actor.role.value if actor is not None else "system",
            details=payload,
            description=description,
            before_state=before_state,
            after_state=payload,
        )

    def log_create(self, actor, resource_type: str, resource_id: Optional[int], description: str, payload: Optional[dict] = None):
        return self._record("create", actor, resource_type, resource_id, description, payload)

    def log_update(
        self,
        actor,
        resource_type: str,
        resource_id: Optional[int],
        description: str,
        payload: Optional[dict] = None,
        before_state: Optional[dict] = None
    ):
        return self._record("update", actor, resource_type, resource_id, description, payload, before_state)

    def log_delete(self, actor, resource_type: str, resource_id: Optional[int], description: str, payload: Optional[dict] = None):
        """The payload is the removed row's last state."""
        return self.log_action(
            action=f"{resource_type}_delete",
            entity_type=resource_type,
            entity_id=resource_id,
            user_id=getattr(actor, "id", None),
            user_role=actor.role.value if actor is not None else "system",
            description=description,
            before_state=payload,
        )
