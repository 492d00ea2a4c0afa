from extensions import db
from models.notification import Notification


def create_notification(user_id, title, type='system', message=None, entity_type=None, entity_id=None):
    notification = Notification(
        user_id=user_id,
        type=type or 'system',
        title=title,
        message=message,
        entity_type=entity_type,
        entity_id=entity_id,
        is_read=False
    )
    db.session.add(notification)
    db.session.commit()
    return notification
