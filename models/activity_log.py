import uuid
from extensions import db
from datetime import datetime

class ActivityLog(db.Model):
    """Audit trail row. Automation writes are attributed to the system identity."""
    __tablename__ = 'activity_logs'

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = db.Column(db.String(36), nullable=False)
    action = db.Column(db.String(100), nullable=False) # create / update / delete
    entity_type = db.Column(db.String(50), nullable=True) # contact, deal, task, message
    entity_id = db.Column(db.String(36), nullable=True)
    changes = db.Column(db.JSON, nullable=True)
    ip_address = db.Column(db.String(45))
    user_agent = db.Column(db.String(255))
    timestamp = db.Column(db.DateTime, default=datetime.utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "action": self.action,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "changes": self.changes,
            "ip_address": self.ip_address,
            "user_agent": self.user_agent,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None
        }
