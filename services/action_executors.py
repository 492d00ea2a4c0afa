"""
Action executors for automation rules.

Each executor takes ``(params, payload)``: the rule's loosely typed
``action_params`` (plus the reserved rule id key) and the triggering event
payload. Params are validated into a typed dataclass first; a missing or
invalid input raises ``ActionConfigError`` or ``ResolutionError`` instead
of silently doing nothing. All writes are attributed to the system audit
identity.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import List, Optional

from flask import current_app

from extensions import db
from models.user import User
from services import contacts, conversations, deals, messages, notifications, round_robin, tasks
from services.audit_log import AuditContext
from services.conditions import resolve_field
from services.errors import ActionConfigError, ResolutionError
from services.events import emit_deal_created

# Injected by the dispatcher; only rule-scoped executors read it
RULE_ID_PARAM = "_ruleId"


class ActionKind(str, Enum):
    ASSIGN_AGENT = "assign_agent"
    CREATE_TASK = "create_task"
    SEND_MESSAGE = "send_message"
    MOVE_DEAL = "move_deal"
    ADD_TAG = "add_tag"
    SEND_NOTIFICATION = "send_notification"
    CREATE_DEAL = "create_deal"


def system_audit():
    return AuditContext(
        user_id=current_app.config.get("AUTOMATION_SYSTEM_USER_ID", "system"),
        ip_address="automation",
        user_agent="automation-engine"
    )


# ===============================
# PARAM HELPERS
# ===============================
def _require(params, key, action):
    value = params.get(key)
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ActionConfigError(f"{action}: '{key}' is required")
    return value


def _optional_str(params, key):
    value = params.get(key)
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    return str(value)


def _str_list(value):
    """Accept a JSON list or a comma separated string."""
    if value is None:
        return []
    if isinstance(value, str):
        value = value.split(",")
    return [str(v).strip() for v in value if str(v).strip()]


def _parse_datetime(value, action):
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        raise ActionConfigError(f"{action}: invalid dueDate '{value}'")
    if parsed.tzinfo is not None:
        parsed = parsed.replace(tzinfo=None) - (parsed.utcoffset() or timedelta())
    return parsed


def _payload_id(payload, entity):
    """``payload.<entity>Id`` first, then ``payload.<entity>.id``."""
    value = payload.get(f"{entity}Id") or resolve_field(payload, f"{entity}.id")
    return str(value) if value else None


# ===============================
# TYPED PARAMS
# ===============================
@dataclass
class AssignAgentParams:
    mode: str = "specific"
    agent_id: Optional[str] = None
    agent_ids: List[str] = field(default_factory=list)
    target: str = "both"
    rule_id: Optional[str] = None

    @classmethod
    def from_params(cls, params):
        mode = params.get("mode") or "specific"
        if mode not in ("specific", "round_robin"):
            raise ActionConfigError(f"assign_agent: unknown mode '{mode}'")
        target = params.get("target") or "both"
        if target not in ("contact", "deal", "both"):
            raise ActionConfigError(f"assign_agent: unknown target '{target}'")

        agent_id = _optional_str(params, "agentId")
        if mode == "specific" and not agent_id:
            raise ActionConfigError("assign_agent: 'agentId' is required for specific assignment")

        rule_id = _optional_str(params, RULE_ID_PARAM)
        if mode == "round_robin" and not rule_id:
            raise ActionConfigError("assign_agent: round_robin mode needs a rule id")

        return cls(mode=mode, agent_id=agent_id, agent_ids=_str_list(params.get("agentIds")),
                   target=target, rule_id=rule_id)


@dataclass
class CreateTaskParams:
    title: str
    description: Optional[str] = None
    type: str = "follow_up"
    priority: str = "medium"
    due_date: Optional[datetime] = None
    assignee_id: Optional[str] = None

    @classmethod
    def from_params(cls, params):
        title = str(_require(params, "title", "create_task"))

        due_date = None
        if params.get("dueInHours") not in (None, ""):
            try:
                hours = float(params["dueInHours"])
            except (TypeError, ValueError):
                raise ActionConfigError(f"create_task: invalid dueInHours '{params['dueInHours']}'")
            due_date = datetime.utcnow() + timedelta(hours=hours)
        elif params.get("dueDate"):
            due_date = _parse_datetime(params["dueDate"], "create_task")

        return cls(
            title=title,
            description=_optional_str(params, "description"),
            type=_optional_str(params, "type") or "follow_up",
            priority=_optional_str(params, "priority") or "medium",
            due_date=due_date,
            assignee_id=_optional_str(params, "assigneeId"),
        )


@dataclass
class SendMessageParams:
    content: str
    conversation_id: Optional[str] = None
    type: str = "text"

    @classmethod
    def from_params(cls, params):
        return cls(
            content=str(_require(params, "content", "send_message")),
            conversation_id=_optional_str(params, "conversationId"),
            type=_optional_str(params, "type") or "text",
        )


@dataclass
class MoveDealParams:
    pipeline_stage_id: str
    lost_reason: Optional[str] = None

    @classmethod
    def from_params(cls, params):
        return cls(
            pipeline_stage_id=str(_require(params, "pipelineStageId", "move_deal")),
            lost_reason=_optional_str(params, "lostReason"),
        )


@dataclass
class AddTagParams:
    tag_ids: List[str]

    @classmethod
    def from_params(cls, params):
        tag_ids = _str_list(params.get("tagIds"))
        if not tag_ids:
            raise ActionConfigError("add_tag: 'tagIds' must be a non-empty list")
        return cls(tag_ids=tag_ids)


@dataclass
class SendNotificationParams:
    user_id: str
    title: str
    message: Optional[str] = None
    type: str = "system"

    @classmethod
    def from_params(cls, params):
        return cls(
            user_id=str(_require(params, "userId", "send_notification")),
            title=str(_require(params, "title", "send_notification")),
            message=_optional_str(params, "message"),
            type=_optional_str(params, "type") or "system",
        )


@dataclass
class CreateDealParams:
    title: str
    pipeline_id: Optional[str] = None
    pipeline_stage_id: Optional[str] = None
    value: float = 0
    currency: str = "USD"
    owner_id: Optional[str] = None
    notes: Optional[str] = None
    tag_ids: List[str] = field(default_factory=list)

    @classmethod
    def from_params(cls, params):
        value = 0
        if params.get("value") not in (None, ""):
            try:
                value = float(params["value"])
            except (TypeError, ValueError):
                raise ActionConfigError(f"create_deal: invalid value '{params['value']}'")

        return cls(
            title=str(_require(params, "title", "create_deal")),
            pipeline_id=_optional_str(params, "pipelineId"),
            pipeline_stage_id=_optional_str(params, "pipelineStageId"),
            value=value,
            currency=(_optional_str(params, "currency") or "USD").upper(),
            owner_id=_optional_str(params, "ownerId"),
            notes=_optional_str(params, "notes"),
            tag_ids=_str_list(params.get("tagIds")),
        )


# ===============================
# EXECUTORS
# ===============================
def assign_agent(params, payload):
    p = AssignAgentParams.from_params(params)

    contact_id = _payload_id(payload, "contact") if p.target in ("contact", "both") else None
    deal_id = _payload_id(payload, "deal") if p.target in ("deal", "both") else None
    conversation_id = _payload_id(payload, "conversation")
    if not (contact_id or deal_id or conversation_id):
        raise ResolutionError("assign_agent: payload has no contact, deal or conversation to assign")

    # All targets must exist before the rotation advances or anything is written
    targets = (
        ("Contact", contact_id, contacts.get_contact),
        ("Deal", deal_id, deals.get_deal),
        ("Conversation", conversation_id, conversations.get_conversation),
    )
    for label, entity_id, lookup in targets:
        if entity_id and lookup(entity_id) is None:
            raise ResolutionError(f"{label} not found: {entity_id}")

    if p.mode == "round_robin":
        agent_id = round_robin.next_agent(p.rule_id, p.agent_ids)
        if not agent_id:
            raise ResolutionError("assign_agent: no active agent available for round-robin assignment")
    else:
        agent_id = p.agent_id

    audit = system_audit()
    if contact_id:
        contacts.update_contact(contact_id, {"owner_id": agent_id}, audit)
    if deal_id:
        deals.update_deal(deal_id, {"owner_id": agent_id}, audit)
    if conversation_id:
        conversations.assign_conversation(conversation_id, agent_id, audit)


def _deal_owner(deal_id, payload):
    deal = deals.get_deal(deal_id)
    if deal:
        return deal.owner_id
    return resolve_field(payload, "deal.ownerId")


def _contact_owner(contact_id, payload):
    contact = contacts.get_contact(contact_id)
    if contact:
        return contact.owner_id
    return resolve_field(payload, "contact.ownerId")


def create_task(params, payload):
    p = CreateTaskParams.from_params(params)
    contact_id = _payload_id(payload, "contact")
    deal_id = _payload_id(payload, "deal")

    assignee_id = p.assignee_id or _deal_owner(deal_id, payload) or _contact_owner(contact_id, payload)

    tasks.create_task({
        "title": p.title,
        "description": p.description,
        "type": p.type,
        "priority": p.priority,
        "due_date": p.due_date,
        "contact_id": contact_id,
        "deal_id": deal_id,
        "assignee_id": assignee_id,
    }, system_audit())


def send_message(params, payload):
    p = SendMessageParams.from_params(params)
    conversation_id = p.conversation_id or _payload_id(payload, "conversation")
    if not conversation_id:
        raise ResolutionError("send_message: no conversation to send to")

    audit = system_audit()
    message = messages.send_message(conversation_id, p.content, direction="outbound", type=p.type,
                                    sender_id=audit.user_id, audit=audit)
    if message is None:
        raise ResolutionError(f"Conversation not found: {conversation_id}")


def move_deal(params, payload):
    p = MoveDealParams.from_params(params)
    deal_id = _payload_id(payload, "deal")
    if not deal_id:
        raise ResolutionError("move_deal: payload has no deal")

    if deals.move_deal(deal_id, p.pipeline_stage_id, p.lost_reason, system_audit()) is None:
        raise ResolutionError(f"Deal not found: {deal_id}")


def add_tag(params, payload):
    p = AddTagParams.from_params(params)
    contact_id = _payload_id(payload, "contact")
    if not contact_id:
        raise ResolutionError("add_tag: payload has no contact")

    # Replaces the whole tag set
    if contacts.set_contact_tags(contact_id, p.tag_ids, system_audit()) is None:
        raise ResolutionError(f"Contact not found: {contact_id}")


def send_notification(params, payload):
    p = SendNotificationParams.from_params(params)
    if db.session.get(User, p.user_id) is None:
        raise ResolutionError(f"User not found: {p.user_id}")

    entity_type, entity_id = None, None
    for entity in ("deal", "contact", "task"):
        entity_id = _payload_id(payload, entity)
        if entity_id:
            entity_type = entity
            break

    notifications.create_notification(
        user_id=p.user_id,
        title=p.title,
        type=p.type,
        message=p.message,
        entity_type=entity_type,
        entity_id=entity_id
    )


def create_deal(params, payload):
    p = CreateDealParams.from_params(params)
    contact_id = _payload_id(payload, "contact")
    if not contact_id:
        raise ResolutionError("create_deal: payload has no contact")
    contact = contacts.get_contact(contact_id)
    if contact is None:
        raise ResolutionError(f"Contact not found: {contact_id}")

    pipeline_id, stage_id = p.pipeline_id, p.pipeline_stage_id
    if stage_id:
        stage = deals.get_stage(stage_id)
        if stage is None:
            raise ResolutionError(f"Pipeline stage not found: {stage_id}")
        if pipeline_id and stage.pipeline_id != pipeline_id:
            raise ActionConfigError("create_deal: pipelineStageId does not belong to pipelineId")
        pipeline_id = stage.pipeline_id
    else:
        if not pipeline_id:
            pipeline = deals.get_default_pipeline()
            if pipeline is None:
                raise ResolutionError("create_deal: no default pipeline configured")
            pipeline_id = pipeline.id
        stage = deals.get_first_stage(pipeline_id)
        if stage is None:
            raise ResolutionError(f"create_deal: pipeline {pipeline_id} has no stages")
        stage_id = stage.id

    deal = deals.create_deal({
        "title": p.title,
        "contact_id": contact_id,
        "pipeline_id": pipeline_id,
        "stage_id": stage_id,
        "value": p.value,
        "currency": p.currency,
        "owner_id": p.owner_id or contact.owner_id,
        "notes": p.notes,
        "tag_ids": p.tag_ids,
    }, system_audit())

    # Chained rules can react to the new deal
    emit_deal_created(deal, contact)


EXECUTORS = {
    ActionKind.ASSIGN_AGENT: assign_agent,
    ActionKind.CREATE_TASK: create_task,
    ActionKind.SEND_MESSAGE: send_message,
    ActionKind.MOVE_DEAL: move_deal,
    ActionKind.ADD_TAG: add_tag,
    ActionKind.SEND_NOTIFICATION: send_notification,
    ActionKind.CREATE_DEAL: create_deal,
}

_missing = set(ActionKind) - set(EXECUTORS)
if _missing:
    raise RuntimeError(f"No executor registered for: {', '.join(sorted(k.value for k in _missing))}")


def get_executor(action):
    """Executor for ``action``; raises ValueError for an unknown action name."""
    return EXECUTORS[ActionKind(action)]
