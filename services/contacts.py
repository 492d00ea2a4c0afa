from extensions import db
from models.contact import Contact, Tag
from services.audit_log import create_audit_log

UPDATABLE_FIELDS = ('name', 'email', 'phone', 'company', 'source', 'status', 'owner_id')


def get_contact(contact_id):
    if not contact_id:
        return None
    return db.session.get(Contact, contact_id)


def update_contact(contact_id, data, audit=None):
    contact = get_contact(contact_id)
    if not contact:
        return None

    changes = {}
    for key, value in data.items():
        if key not in UPDATABLE_FIELDS:
            continue
        setattr(contact, key, value)
        changes[key] = value

    create_audit_log(audit, 'update', 'contact', contact.id, changes)
    db.session.commit()
    return contact


def set_contact_tags(contact_id, tag_ids, audit=None):
    """
    Replace the contact's full tag set with ``tag_ids``.
    Raises LookupError if any tag id is unknown.
    """
    contact = get_contact(contact_id)
    if not contact:
        return None

    tags = Tag.query.filter(Tag.id.in_(tag_ids)).all() if tag_ids else []
    found = {t.id for t in tags}
    missing = [t for t in tag_ids if t not in found]
    if missing:
        raise LookupError(f"Tag not found: {', '.join(missing)}")

    previous = contact.tag_ids
    contact.tags = tags

    create_audit_log(audit, 'update', 'contact', contact.id, {
        'tag_ids': {'from': previous, 'to': list(tag_ids)}
    })
    db.session.commit()
    return contact
