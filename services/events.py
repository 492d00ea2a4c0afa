"""
In-process event source for CRM business events.

Domain code calls the ``emit_*`` helpers after its write is committed; the
automation engine subscribes to every trigger on ``event_bus`` and skips
events emitted while the session still holds uncommitted changes. Payloads
are plain dicts whose keys follow the condition field table in
``services.conditions.TRIGGER_FIELDS``.
"""

from enum import Enum

import structlog

logger = structlog.get_logger(__name__)


class Trigger(str, Enum):
    CONTACT_CREATED = "contact_created"
    DEAL_CREATED = "deal_created"
    DEAL_STAGE_CHANGED = "deal_stage_changed"
    MESSAGE_RECEIVED = "message_received"
    TAG_ADDED = "tag_added"
    TASK_COMPLETED = "task_completed"
    CONVERSATION_CREATED = "conversation_created"


class EventBus:
    """Synchronous publish/subscribe keyed by trigger name."""

    def __init__(self):
        self._listeners = {}

    def subscribe(self, trigger, listener):
        self._listeners.setdefault(Trigger(trigger).value, []).append(listener)

    def unsubscribe(self, trigger, listener):
        listeners = self._listeners.get(Trigger(trigger).value, [])
        if listener in listeners:
            listeners.remove(listener)

    def listeners(self, trigger):
        return list(self._listeners.get(Trigger(trigger).value, []))

    def emit(self, trigger, payload):
        """
        Deliver ``payload`` to every listener of ``trigger`` in subscription
        order. A failing listener is logged and never breaks the emitter.
        """
        name = Trigger(trigger).value
        for listener in self.listeners(name):
            try:
                listener(name, payload)
            except Exception as e:
                logger.error("event_bus.listener_failed", trigger=name, error=str(e))


event_bus = EventBus()


# ===============================
# PAYLOAD SNAPSHOTS
# ===============================
def contact_snapshot(contact):
    if contact is None:
        return {}
    return {
        "id": contact.id,
        "name": contact.name,
        "email": contact.email,
        "phone": contact.phone,
        "source": contact.source,
        "status": contact.status,
        "ownerId": contact.owner_id,
        "tagIds": contact.tag_ids,
        "tagNames": contact.tag_names,
    }


def deal_snapshot(deal):
    return {
        "id": deal.id,
        "title": deal.title,
        "value": deal.value,
        "currency": deal.currency,
        "contactId": deal.contact_id,
        "pipelineId": deal.pipeline_id,
        "stageId": deal.stage_id,
        "ownerId": deal.owner_id,
        "status": deal.status,
    }


def task_snapshot(task):
    return {
        "id": task.id,
        "title": task.title,
        "type": task.type,
        "priority": task.priority,
        "status": task.status,
        "contactId": task.contact_id,
        "dealId": task.deal_id,
        "assigneeId": task.assignee_id,
    }


def conversation_snapshot(conversation):
    return {
        "id": conversation.id,
        "contactId": conversation.contact_id,
        "channelType": conversation.channel_type,
        "assigneeId": conversation.assignee_id,
        "status": conversation.status,
    }


def message_snapshot(message):
    return {
        "id": message.id,
        "conversationId": message.conversation_id,
        "direction": message.direction,
        "type": message.type,
        "content": message.content,
    }


# ===============================
# PAYLOAD BUILDERS
# ===============================
def contact_created_payload(contact):
    return {"contactId": contact.id, "contact": contact_snapshot(contact)}


def deal_created_payload(deal, contact=None):
    payload = {"dealId": deal.id, "deal": deal_snapshot(deal)}
    if deal.contact_id:
        payload["contactId"] = deal.contact_id
    if contact is not None:
        payload["contact"] = contact_snapshot(contact)
    return payload


def deal_stage_changed_payload(deal, previous_stage_id, stage_name=None):
    payload = {
        "dealId": deal.id,
        "deal": deal_snapshot(deal),
        "previousStageId": previous_stage_id,
        "newStageId": deal.stage_id,
        "stageName": stage_name,
    }
    if deal.contact_id:
        payload["contactId"] = deal.contact_id
    return payload


def message_received_payload(message, conversation, contact=None):
    return {
        "messageId": message.id,
        "conversationId": conversation.id,
        "contactId": conversation.contact_id,
        "message": message_snapshot(message),
        "conversation": conversation_snapshot(conversation),
        "contact": contact_snapshot(contact),
    }


def tag_added_payload(contact, tags):
    return {
        "contactId": contact.id,
        "tagIds": [t.id for t in tags],
        "tag": [t.name for t in tags],
        "entityType": "contact",
        "contact": contact_snapshot(contact),
    }


def task_completed_payload(task):
    payload = {"taskId": task.id, "task": task_snapshot(task)}
    if task.contact_id:
        payload["contactId"] = task.contact_id
    if task.deal_id:
        payload["dealId"] = task.deal_id
    return payload


def conversation_created_payload(conversation, contact=None):
    return {
        "conversationId": conversation.id,
        "contactId": conversation.contact_id,
        "conversation": conversation_snapshot(conversation),
        "contact": contact_snapshot(contact),
    }


# ===============================
# EMIT HELPERS
# ===============================
def emit_contact_created(contact, bus=None):
    (bus or event_bus).emit(Trigger.CONTACT_CREATED, contact_created_payload(contact))


def emit_deal_created(deal, contact=None, bus=None):
    (bus or event_bus).emit(Trigger.DEAL_CREATED, deal_created_payload(deal, contact))


def emit_deal_stage_changed(deal, previous_stage_id, stage_name=None, bus=None):
    (bus or event_bus).emit(Trigger.DEAL_STAGE_CHANGED, deal_stage_changed_payload(deal, previous_stage_id, stage_name))


def emit_message_received(message, conversation, contact=None, bus=None):
    (bus or event_bus).emit(Trigger.MESSAGE_RECEIVED, message_received_payload(message, conversation, contact))


def emit_tag_added(contact, tags, bus=None):
    if not tags:
        return
    (bus or event_bus).emit(Trigger.TAG_ADDED, tag_added_payload(contact, tags))


def emit_task_completed(task, bus=None):
    (bus or event_bus).emit(Trigger.TASK_COMPLETED, task_completed_payload(task))


def emit_conversation_created(conversation, contact=None, bus=None):
    (bus or event_bus).emit(Trigger.CONVERSATION_CREATED, conversation_created_payload(conversation, contact))
