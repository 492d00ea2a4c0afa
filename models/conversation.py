import uuid
from extensions import db
from datetime import datetime

class Conversation(db.Model):
    __tablename__ = "conversations"

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    contact_id = db.Column(db.String(36), db.ForeignKey("contacts.id"), nullable=True)
    channel_type = db.Column(db.String(50))   # whatsapp, email, instagram, telegram
    assignee_id = db.Column(db.String(36), db.ForeignKey("users.id"), nullable=True)
    status = db.Column(db.String(20), default="open")
    is_unread = db.Column(db.Boolean, default=False)
    last_message_at = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "contact_id": self.contact_id,
            "channel_type": self.channel_type,
            "assignee_id": self.assignee_id,
            "status": self.status,
            "is_unread": self.is_unread,
            "last_message_at": self.last_message_at.isoformat() if self.last_message_at else None
        }
