import uuid
from extensions import db
from datetime import datetime

deal_tags = db.Table(
    'deal_tags',
    db.Column('deal_id', db.String(36), db.ForeignKey('deals.id'), primary_key=True),
    db.Column('tag_id', db.String(36), db.ForeignKey('tags.id'), primary_key=True)
)

class Deal(db.Model):
    __tablename__ = 'deals'
    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    title = db.Column(db.String(150), nullable=False)
    value = db.Column(db.Float, default=0)
    currency = db.Column(db.String(3), default='USD')
    contact_id = db.Column(db.String(36), db.ForeignKey('contacts.id'))
    pipeline_id = db.Column(db.String(36), db.ForeignKey('pipelines.id'))
    stage_id = db.Column(db.String(36), db.ForeignKey('pipeline_stages.id'))
    stage_order = db.Column(db.Integer, default=0)
    owner_id = db.Column(db.String(36), db.ForeignKey('users.id'))
    status = db.Column(db.String(20), default='open') # open / won / lost
    lost_reason = db.Column(db.String(255))
    notes = db.Column(db.Text)
    closed_at = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    tags = db.relationship('Tag', secondary=deal_tags, lazy='subquery')

    def to_dict(self):
        return {
            'id': self.id,
            'title': self.title,
            'value': self.value,
            'currency': self.currency,
            'contact_id': self.contact_id,
            'pipeline_id': self.pipeline_id,
            'stage_id': self.stage_id,
            'owner_id': self.owner_id,
            'status': self.status,
            'lost_reason': self.lost_reason,
            'notes': self.notes,
            'tag_ids': [t.id for t in self.tags],
            'closed_at': self.closed_at.isoformat() if self.closed_at else None,
            'created_at': self.created_at.isoformat() if self.created_at else None
        }
