from extensions import db
from models.conversation import Conversation
from services.audit_log import create_audit_log


def get_conversation(conversation_id):
    if not conversation_id:
        return None
    return db.session.get(Conversation, conversation_id)


def assign_conversation(conversation_id, user_id, audit=None):
    conversation = get_conversation(conversation_id)
    if not conversation:
        return None

    previous = conversation.assignee_id
    conversation.assignee_id = user_id

    create_audit_log(audit, 'update', 'conversation', conversation.id, {
        'assignee_id': {'from': previous, 'to': user_id}
    })
    db.session.commit()
    return conversation
