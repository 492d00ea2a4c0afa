"""
Automation engine: rule matching and action dispatch.

``process(trigger, payload)`` is the single entry point. It loads the
active rules for the trigger, keeps the ones whose conditions all hold,
and dispatches their actions one at a time in priority order. A failing
action is recorded and never stops the remaining rules.
"""

from contextvars import ContextVar
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional

import structlog
from flask import current_app
from sqlalchemy import event
from sqlalchemy.orm import Session

from extensions import db
from models.automation import AutomationLog
from services.action_executors import RULE_ID_PARAM, get_executor
from services.automation_rules import list_active_rules_for_trigger
from services.conditions import evaluate_conditions
from services.events import Trigger

logger = structlog.get_logger(__name__)

# Nesting depth of process() calls caused by actions re-emitting events
_chain_depth = ContextVar("automation_chain_depth", default=0)

_FLUSHED_KEY = "automation_flushed_uncommitted"


@event.listens_for(Session, "after_flush")
def _mark_flushed(session, flush_context):
    session.info[_FLUSHED_KEY] = True


@event.listens_for(Session, "after_commit")
@event.listens_for(Session, "after_rollback")
def _clear_flushed(session):
    session.info.pop(_FLUSHED_KEY, None)


def has_uncommitted_work(session):
    """True when the session holds pending, dirty, deleted or flushed-but-uncommitted changes."""
    return bool(session.new or session.dirty or session.deleted or session.info.get(_FLUSHED_KEY))


@dataclass(frozen=True)
class MatchedRule:
    id: str
    name: str
    action: str
    action_params: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ActionResult:
    success: bool
    action: str
    rule_id: str
    rule_name: str
    error: Optional[str] = None

    def to_dict(self):
        result = {
            "success": self.success,
            "action": self.action,
            "ruleId": self.rule_id,
            "ruleName": self.rule_name,
        }
        if self.error is not None:
            result["error"] = self.error
        return result


# ===============================
# RULE MATCHER
# ===============================
def match(trigger, payload):
    """Active rules for ``trigger`` whose conditions all hold, lowest priority first."""
    rules = list_active_rules_for_trigger(Trigger(trigger).value)
    # Stable sort: equal priorities keep creation order
    rules = sorted(rules, key=lambda r: r.created_at or datetime.min)
    rules = sorted(rules, key=lambda r: r.priority or 0)

    matched = []
    for rule in rules:
        if evaluate_conditions(rule.conditions or [], payload):
            matched.append(MatchedRule(
                id=rule.id,
                name=rule.name,
                action=rule.action,
                action_params=dict(rule.action_params or {})
            ))
    return matched


# ===============================
# ACTION DISPATCHER
# ===============================
def dispatch(rule, payload, trigger=None):
    """Run the rule's action. Always returns an ActionResult, never raises."""
    try:
        executor = get_executor(rule.action)
    except ValueError:
        result = ActionResult(False, rule.action, rule.id, rule.name, f"Unknown action type: {rule.action}")
    else:
        params = dict(rule.action_params)
        params[RULE_ID_PARAM] = rule.id
        try:
            executor(params, payload)
            result = ActionResult(True, rule.action, rule.id, rule.name)
        except Exception as e:
            db.session.rollback()
            result = ActionResult(False, rule.action, rule.id, rule.name, str(e) or e.__class__.__name__)

    _record(result, trigger)
    return result


def _record(result, trigger):
    if result.success:
        logger.info("automation.action_succeeded", rule_id=result.rule_id, rule_name=result.rule_name,
                    action=result.action, trigger=trigger)
    else:
        logger.warning("automation.action_failed", rule_id=result.rule_id, rule_name=result.rule_name,
                       action=result.action, trigger=trigger, error=result.error)

    try:
        db.session.add(AutomationLog(
            rule_id=result.rule_id,
            rule_name=result.rule_name,
            trigger=trigger,
            action=result.action,
            status="success" if result.success else "failed",
            error=result.error
        ))
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        logger.error("automation.log_write_failed", rule_id=result.rule_id, error=str(e))


# ===============================
# MAIN ENTRY POINT
# ===============================
def process(trigger, payload):
    """
    Match and run every rule for one event, sequentially.
    Returns the ActionResults in execution order.
    """
    trigger = Trigger(trigger).value
    config = current_app.config
    if not config.get("AUTOMATION_ENABLED", True):
        return []

    # Actions commit and roll back the shared session; never touch a caller's open write
    if has_uncommitted_work(db.session):
        logger.warning("automation.uncommitted_session", trigger=trigger)
        return []

    depth = _chain_depth.get()
    max_depth = config.get("AUTOMATION_MAX_CHAIN_DEPTH", 5)
    if depth >= max_depth:
        logger.warning("automation.chain_depth_exceeded", trigger=trigger, depth=depth, max_depth=max_depth)
        return []

    matched = match(trigger, payload or {})
    if not matched:
        return []

    results = []
    token = _chain_depth.set(depth + 1)
    try:
        for rule in matched:
            logger.info("automation.rule_matched", rule_id=rule.id, rule_name=rule.name,
                        trigger=trigger, action=rule.action)
            results.append(dispatch(rule, payload or {}, trigger))
    finally:
        _chain_depth.reset(token)
    return results


def handle_trigger(trigger, payload):
    """Event bus listener. Automation failures must never break the emitter."""
    try:
        return process(trigger, payload)
    except Exception as e:
        db.session.rollback()
        logger.error("automation.trigger_failed", trigger=str(trigger), error=str(e))
        return []


def init_automation_engine(bus):
    """Subscribe the engine to every trigger on ``bus``. Safe to call repeatedly."""
    if handle_trigger in bus.listeners(Trigger.CONTACT_CREATED):
        return

    for trigger in Trigger:
        bus.subscribe(trigger, handle_trigger)
    logger.info("automation.engine_initialized", triggers=[t.value for t in Trigger])
