import uuid
from extensions import db
from datetime import datetime


class Message(db.Model):
    __tablename__ = "messages"

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    conversation_id = db.Column(
        db.String(36),
        db.ForeignKey("conversations.id"),
        nullable=False
    )

    direction = db.Column(db.String(20), default="outbound")
    # inbound / outbound

    sender_id = db.Column(db.String(36), nullable=True)

    type = db.Column(db.String(20), default="text")
    # text / image / template

    content = db.Column(db.Text, nullable=False)

    status = db.Column(
        db.String(20),
        default="sent"
    )
    # sending / sent / delivered / read

    created_at = db.Column(
        db.DateTime,
        default=datetime.utcnow
    )

    def to_dict(self):
        return {
            "id": self.id,
            "conversation_id": self.conversation_id,
            "direction": self.direction,
            "sender_id": self.sender_id,
            "type": self.type,
            "content": self.content,
            "status": self.status,
            "created_at": self.created_at.isoformat() if self.created_at else None
        }
