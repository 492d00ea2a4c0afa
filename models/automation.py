import uuid
from extensions import db
from datetime import datetime

class AutomationRule(db.Model):
    __tablename__ = 'automation_rules'

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text)
    trigger = db.Column(db.String(50), nullable=False, index=True) # contact_created, deal_stage_changed
    # [{"field": "contact.source", "operator": "eq", "value": "web_form"}]
    conditions = db.Column(db.JSON, default=list)
    action = db.Column(db.String(50), nullable=False) # assign_agent, create_task
    action_params = db.Column(db.JSON, default=dict)
    priority = db.Column(db.Integer, default=0) # lower runs first
    is_active = db.Column(db.Boolean, default=True)
    created_by_id = db.Column(db.String(36))
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "trigger": self.trigger,
            "conditions": self.conditions or [],
            "action": self.action,
            "action_params": self.action_params or {},
            "priority": self.priority,
            "is_active": self.is_active,
            "created_by_id": self.created_by_id,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None
        }

class AutomationLog(db.Model):
    __tablename__ = 'automation_logs'

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    rule_id = db.Column(db.String(36), index=True)
    rule_name = db.Column(db.String(255))
    trigger = db.Column(db.String(50))
    action = db.Column(db.String(50))
    status = db.Column(db.String(20)) # success / failed
    error = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "rule_id": self.rule_id,
            "rule_name": self.rule_name,
            "trigger": self.trigger,
            "action": self.action,
            "status": self.status,
            "error": self.error,
            "created_at": self.created_at.isoformat() if self.created_at else None
        }

class RoundRobinState(db.Model):
    __tablename__ = 'round_robin_state'

    rule_id = db.Column(db.String(36), primary_key=True)
    last_index = db.Column(db.Integer, nullable=False, default=-1)
    last_agent_id = db.Column(db.String(36))
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
