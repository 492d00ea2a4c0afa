from dataclasses import dataclass
from typing import Optional

from extensions import db
from models.activity_log import ActivityLog


@dataclass(frozen=True)
class AuditContext:
    """Who performed a write. Mirrors what the API layer passes for end users."""

    user_id: str
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None


def create_audit_log(audit, action, entity_type, entity_id, changes=None):
    """
    Stage an audit row on the current session. The caller commits.
    No-op when ``audit`` is None.
    """
    if audit is None:
        return None

    log = ActivityLog(
        user_id=audit.user_id,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        changes=changes,
        ip_address=audit.ip_address,
        user_agent=audit.user_agent
    )
    db.session.add(log)
    return log
