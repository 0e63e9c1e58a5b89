import uuid
from typing import Any, Optional

from sqlalchemy.orm import Session

from app.models.audit_log import AuditLog


def log_action(
    db: Session,
    actor_id: Optional[uuid.UUID],
    action: str,
    resource_type: str,
    resource_id: Any = None,
    details: dict | None = None,
):
    entry = AuditLog(
        actor_id=actor_id,
        action=action,
        resource_type=resource_type,
        resource_id=str(resource_id) if resource_id is not None else None,
        details=details.copy() if isinstance(details, dict) else None,
    )
    db.add(entry)
    db.commit()
    return entry
