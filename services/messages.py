from datetime import datetime
from extensions import db
from models.message import Message
from services.audit_log import create_audit_log
from services.conversations import get_conversation


def send_message(conversation_id, content, direction='outbound', type='text', sender_id=None, audit=None):
    """
    Store a message on an existing conversation.
    Returns None when the conversation does not exist.
    """
    conversation = get_conversation(conversation_id)
    if not conversation:
        return None

    message = Message(
        conversation_id=conversation.id,
        sender_id=sender_id,
        direction=direction,
        type=type or 'text',
        content=content,
        status='sent' if direction == 'outbound' else 'delivered'
    )
    db.session.add(message)

    conversation.last_message_at = datetime.utcnow()
    conversation.is_unread = direction == 'inbound'
    db.session.flush()

    create_audit_log(audit, 'create', 'message', message.id, {
        'conversation_id': conversation.id,
        'direction': direction,
        'type': message.type
    })
    db.session.commit()
    return message
