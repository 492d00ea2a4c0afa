from datetime import datetime
from sqlalchemy import func
from extensions import db
from models.crm import Deal
from models.contact import Tag
from models.pipeline import Pipeline, PipelineStage
from services.audit_log import create_audit_log

UPDATABLE_FIELDS = ('title', 'value', 'currency', 'owner_id', 'notes')


def get_deal(deal_id):
    if not deal_id:
        return None
    return db.session.get(Deal, deal_id)


def get_stage(stage_id):
    if not stage_id:
        return None
    return db.session.get(PipelineStage, stage_id)


def get_default_pipeline():
    """First pipeline flagged as default (oldest wins)."""
    return Pipeline.query.filter_by(is_default=True).order_by(Pipeline.created_at.asc()).first()


def get_first_stage(pipeline_id):
    return PipelineStage.query.filter_by(pipeline_id=pipeline_id).order_by(PipelineStage.position.asc()).first()


def create_deal(data, audit=None):
    """
    data keys: title, contact_id, pipeline_id, stage_id, value, currency,
    owner_id, notes, tag_ids
    """
    tag_ids = data.get('tag_ids') or []
    tags = Tag.query.filter(Tag.id.in_(tag_ids)).all() if tag_ids else []
    missing = set(tag_ids) - {t.id for t in tags}
    if missing:
        raise LookupError(f"Tag not found: {', '.join(sorted(missing))}")

    deal = Deal(
        title=data['title'],
        contact_id=data.get('contact_id'),
        pipeline_id=data.get('pipeline_id'),
        stage_id=data.get('stage_id'),
        stage_order=_next_stage_order(data.get('stage_id')),
        value=data.get('value') or 0,
        currency=data.get('currency') or 'USD',
        owner_id=data.get('owner_id'),
        notes=data.get('notes'),
        status='open'
    )
    deal.tags = tags
    db.session.add(deal)
    db.session.flush()

    create_audit_log(audit, 'create', 'deal', deal.id, {
        k: v for k, v in data.items() if v is not None
    })
    db.session.commit()
    return deal


def update_deal(deal_id, data, audit=None):
    deal = get_deal(deal_id)
    if not deal:
        return None

    changes = {}
    for key, value in data.items():
        if key not in UPDATABLE_FIELDS:
            continue
        setattr(deal, key, value)
        changes[key] = value

    create_audit_log(audit, 'update', 'deal', deal.id, changes)
    db.session.commit()
    return deal


def move_deal(deal_id, stage_id, lost_reason=None, audit=None):
    """
    Move a deal to another stage of its pipeline.
    Returns None when the deal does not exist; raises LookupError/ValueError
    for an unknown stage or a stage outside the deal's pipeline.
    """
    deal = get_deal(deal_id)
    if not deal:
        return None

    stage = get_stage(stage_id)
    if not stage:
        raise LookupError('Target stage not found')

    if deal.pipeline_id and stage.pipeline_id != deal.pipeline_id:
        raise ValueError('Target stage does not belong to the deal pipeline')

    from_stage_id = deal.stage_id
    deal.pipeline_id = stage.pipeline_id
    deal.stage_id = stage.id
    deal.stage_order = _next_stage_order(stage.id)

    if stage.is_win_stage:
        deal.status = 'won'
        deal.closed_at = datetime.utcnow()
    elif stage.is_loss_stage:
        deal.status = 'lost'
        deal.closed_at = datetime.utcnow()
        if lost_reason:
            deal.lost_reason = lost_reason
    elif deal.status in ('won', 'lost'):
        # Reopened
        deal.status = 'open'
        deal.closed_at = None
        deal.lost_reason = None

    create_audit_log(audit, 'update', 'deal', deal.id, {
        'action': 'stage_move',
        'from_stage_id': from_stage_id,
        'to_stage_id': stage.id,
        'to_stage_name': stage.name,
        'is_win_stage': bool(stage.is_win_stage),
        'is_loss_stage': bool(stage.is_loss_stage)
    })
    db.session.commit()
    return deal


def _next_stage_order(stage_id):
    if not stage_id:
        return 0
    current_max = db.session.query(func.max(Deal.stage_order)).filter(Deal.stage_id == stage_id).scalar()
    return 0 if current_max is None else current_max + 1
