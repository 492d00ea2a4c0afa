"""Small record builders. Every helper commits so the row is visible to services."""

import uuid

from extensions import db
from models import (
    AutomationRule, Contact, Conversation, Deal, Pipeline, PipelineStage, Tag, User,
)


def _add(obj):
    db.session.add(obj)
    db.session.commit()
    return obj


def make_user(id=None, name="Agent", email=None, role="agent", is_active=True):
    id = id or str(uuid.uuid4())
    return _add(User(id=id, name=name, email=email or f"{id}@crm.test", role=role, is_active=is_active))


def make_tag(id=None, name=None):
    id = id or str(uuid.uuid4())
    return _add(Tag(id=id, name=name or id))


def make_contact(id=None, name="Riya Sharma", email="riya@acme.com", source="web_form", owner_id=None, tags=()):
    contact = Contact(id=id or str(uuid.uuid4()), name=name, email=email, source=source, owner_id=owner_id)
    contact.tags = list(tags)
    return _add(contact)


def make_pipeline(name="Sales", is_default=True, stages=(("New", 0), ("Won", 1)), win_stage="Won", loss_stage=None):
    pipeline = _add(Pipeline(name=name, is_default=is_default))
    for stage_name, position in stages:
        db.session.add(PipelineStage(
            pipeline_id=pipeline.id,
            name=stage_name,
            position=position,
            is_win_stage=stage_name == win_stage,
            is_loss_stage=stage_name == loss_stage
        ))
    db.session.commit()
    return pipeline


def stage_named(pipeline, name):
    return PipelineStage.query.filter_by(pipeline_id=pipeline.id, name=name).one()


def make_deal(title="Website redesign", contact_id=None, pipeline=None, stage=None, owner_id=None, value=1000):
    return _add(Deal(
        title=title,
        contact_id=contact_id,
        pipeline_id=pipeline.id if pipeline else None,
        stage_id=stage.id if stage else None,
        owner_id=owner_id,
        value=value
    ))


def make_conversation(contact_id=None, channel_type="whatsapp", assignee_id=None):
    return _add(Conversation(contact_id=contact_id, channel_type=channel_type, assignee_id=assignee_id))


def make_rule(trigger="contact_created", action="create_task", conditions=None, action_params=None,
              priority=0, is_active=True, name=None, created_at=None):
    rule = AutomationRule(
        name=name or f"{trigger} -> {action}",
        trigger=trigger,
        conditions=conditions or [],
        action=action,
        action_params=action_params if action_params is not None else {"title": "Follow up"},
        priority=priority,
        is_active=is_active
    )
    if created_at is not None:
        rule.created_at = created_at
    return _add(rule)
