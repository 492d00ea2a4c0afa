import uuid
from extensions import db
from datetime import datetime

contact_tags = db.Table(
    'contact_tags',
    db.Column('contact_id', db.String(36), db.ForeignKey('contacts.id'), primary_key=True),
    db.Column('tag_id', db.String(36), db.ForeignKey('tags.id'), primary_key=True)
)

class Tag(db.Model):
    __tablename__ = 'tags'

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = db.Column(db.String(100), unique=True, nullable=False)
    color = db.Column(db.String(20))
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def to_dict(self):
        return {'id': self.id, 'name': self.name, 'color': self.color}

class Contact(db.Model):
    __tablename__ = 'contacts'

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = db.Column(db.String(100), nullable=False)
    email = db.Column(db.String(100))
    phone = db.Column(db.String(20))
    company = db.Column(db.String(100))
    source = db.Column(db.String(50)) # web_form / whatsapp / instagram / manual
    status = db.Column(db.String(20), default='Lead') # Lead, Active, Inactive

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Foreign Keys
    owner_id = db.Column(db.String(36), db.ForeignKey('users.id')) # Agent assigned

    tags = db.relationship('Tag', secondary=contact_tags, lazy='subquery', order_by='Tag.name')

    @property
    def tag_ids(self):
        return [t.id for t in self.tags]

    @property
    def tag_names(self):
        return [t.name for t in self.tags]

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'email': self.email,
            'phone': self.phone,
            'company': self.company,
            'source': self.source,
            'status': self.status,
            'owner_id': self.owner_id,
            'tag_ids': self.tag_ids,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None
        }
