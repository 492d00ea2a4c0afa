import uuid
from extensions import db
from datetime import datetime

class Task(db.Model):
    __tablename__ = 'tasks'

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text)
    type = db.Column(db.String(50), default='follow_up') # follow_up / call / email / meeting
    priority = db.Column(db.String(20), default='medium') # low / medium / high
    status = db.Column(db.String(20), default='pending') # pending / completed
    due_date = db.Column(db.DateTime)

    contact_id = db.Column(db.String(36), db.ForeignKey('contacts.id'))
    deal_id = db.Column(db.String(36), db.ForeignKey('deals.id'))
    assignee_id = db.Column(db.String(36), db.ForeignKey('users.id'))
    created_by_id = db.Column(db.String(36))

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    completed_at = db.Column(db.DateTime)

    @property
    def is_overdue(self):
        return bool(self.due_date and self.status != 'completed' and self.due_date < datetime.utcnow())

    def to_dict(self):
        return {
            'id': self.id,
            'title': self.title,
            'description': self.description,
            'type': self.type,
            'priority': self.priority,
            'status': self.status,
            'due_date': self.due_date.isoformat() if self.due_date else None,
            'is_overdue': self.is_overdue,
            'contact_id': self.contact_id,
            'deal_id': self.deal_id,
            'assignee_id': self.assignee_id,
            'created_by_id': self.created_by_id,
            'created_at': self.created_at.isoformat() if self.created_at else None
        }
