from extensions import db
from models.task import Task
from services.audit_log import create_audit_log


def create_task(data, audit=None):
    new_task = Task(
        title=data['title'],
        description=data.get('description'),
        type=data.get('type') or 'follow_up',
        priority=data.get('priority') or 'medium',
        status='pending',
        due_date=data.get('due_date'),
        contact_id=data.get('contact_id'),
        deal_id=data.get('deal_id'),
        assignee_id=data.get('assignee_id'),
        created_by_id=audit.user_id if audit else None
    )

    db.session.add(new_task)
    db.session.flush()

    create_audit_log(audit, 'create', 'task', new_task.id, {
        k: (v.isoformat() if hasattr(v, 'isoformat') else v)
        for k, v in data.items() if v is not None
    })
    db.session.commit()
    return new_task
