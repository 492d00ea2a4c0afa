from extensions import db
from models.automation import AutomationRule
from services import round_robin
from services.action_executors import ActionKind
from services.audit_log import create_audit_log
from services.conditions import OPERATORS, TRIGGER_FIELDS
from services.errors import RuleValidationError
from services.events import Trigger

RULE_FIELDS = ('name', 'description', 'trigger', 'conditions', 'action', 'action_params', 'is_active', 'priority')


def validate_rule_data(data, partial=False, current=None):
    """
    Check rule input and return the cleaned dict.
    ``current`` is the stored rule when updating, used to validate
    conditions against the effective trigger.
    """
    if not isinstance(data, dict):
        raise RuleValidationError({'body': 'Expected a JSON object'})

    errors = {}
    cleaned = {k: data[k] for k in RULE_FIELDS if k in data}

    if not partial or 'name' in cleaned:
        name = cleaned.get('name')
        if not isinstance(name, str) or not name.strip() or len(name) > 255:
            errors['name'] = 'Name is required (1-255 characters)'

    trigger = cleaned.get('trigger', current.trigger if current else None)
    if not partial or 'trigger' in cleaned:
        if trigger not in {t.value for t in Trigger}:
            errors['trigger'] = f"Unknown trigger: {trigger}"

    if not partial or 'action' in cleaned:
        action = cleaned.get('action')
        if action not in {a.value for a in ActionKind}:
            errors['action'] = f"Unknown action type: {action}"

    if 'conditions' in cleaned or (partial and 'trigger' in cleaned and current is not None):
        conditions = cleaned.get('conditions', current.conditions if current else [])
        if conditions is None:
            conditions = []
        if not isinstance(conditions, list):
            errors['conditions'] = 'Conditions must be a list'
        else:
            allowed = TRIGGER_FIELDS.get(trigger, ())
            normalized = []
            for i, cond in enumerate(conditions):
                if not isinstance(cond, dict):
                    errors[f'conditions.{i}'] = 'Condition must be an object'
                    continue
                if cond.get('field') not in allowed:
                    errors[f'conditions.{i}.field'] = f"Field '{cond.get('field')}' is not valid for trigger '{trigger}'"
                if cond.get('operator') not in OPERATORS:
                    errors[f'conditions.{i}.operator'] = f"Unknown operator: {cond.get('operator')}"
                value = cond.get('value', '')
                if isinstance(value, list):
                    value = ','.join(str(v) for v in value)
                normalized.append({'field': cond.get('field'), 'operator': cond.get('operator'),
                                   'value': '' if value is None else str(value)})
            cleaned['conditions'] = normalized

    if 'action_params' in cleaned and cleaned['action_params'] is None:
        cleaned['action_params'] = {}
    if 'action_params' in cleaned and not isinstance(cleaned['action_params'], dict):
        errors['action_params'] = 'Action params must be an object'

    if 'is_active' in cleaned and not isinstance(cleaned['is_active'], bool):
        errors['is_active'] = 'is_active must be a boolean'

    if 'priority' in cleaned:
        priority = cleaned['priority']
        if isinstance(priority, bool) or not isinstance(priority, int) or priority < 0:
            errors['priority'] = 'Priority must be a non-negative integer'

    if errors:
        raise RuleValidationError(errors)
    return cleaned


def list_automation_rules(trigger=None, action=None, is_active=None, search=None, limit=50, offset=0):
    query = AutomationRule.query
    if trigger:
        query = query.filter(AutomationRule.trigger == trigger)
    if action:
        query = query.filter(AutomationRule.action == action)
    if is_active is not None:
        query = query.filter(AutomationRule.is_active.is_(is_active))
    if search:
        query = query.filter(AutomationRule.name.ilike(f"%{search}%"))

    total = query.count()
    entries = query.order_by(AutomationRule.created_at.desc()).offset(offset).limit(limit).all()
    return entries, total


def get_automation_rule(rule_id):
    return db.session.get(AutomationRule, rule_id)


def list_active_rules_for_trigger(trigger):
    """Active rules for a trigger, in storage order. Ordering is the matcher's job."""
    return AutomationRule.query.filter_by(trigger=trigger, is_active=True).all()


def create_automation_rule(data, created_by_id=None, audit=None):
    cleaned = validate_rule_data(data)
    rule = AutomationRule(
        name=cleaned['name'].strip(),
        description=cleaned.get('description'),
        trigger=cleaned['trigger'],
        conditions=cleaned.get('conditions', []),
        action=cleaned['action'],
        action_params=cleaned.get('action_params') or {},
        is_active=cleaned.get('is_active', True),
        priority=cleaned.get('priority', 0),
        created_by_id=created_by_id
    )
    db.session.add(rule)
    db.session.flush()

    create_audit_log(audit, 'create', 'automation_rule', rule.id, cleaned)
    db.session.commit()
    return rule


def update_automation_rule(rule_id, data, audit=None):
    rule = get_automation_rule(rule_id)
    if not rule:
        return None

    cleaned = validate_rule_data(data, partial=True, current=rule)
    for key, value in cleaned.items():
        setattr(rule, key, value.strip() if key == 'name' else value)

    create_audit_log(audit, 'update', 'automation_rule', rule.id, cleaned)
    db.session.commit()
    return rule


def toggle_automation_rule(rule_id, audit=None):
    rule = get_automation_rule(rule_id)
    if not rule:
        return None

    rule.is_active = not rule.is_active
    create_audit_log(audit, 'update', 'automation_rule', rule.id, {'is_active': rule.is_active})
    db.session.commit()
    return rule


def delete_automation_rule(rule_id, audit=None):
    rule = get_automation_rule(rule_id)
    if not rule:
        return None

    round_robin.reset(rule.id)
    db.session.delete(rule)
    create_audit_log(audit, 'delete', 'automation_rule', rule_id)
    db.session.commit()
    return rule
