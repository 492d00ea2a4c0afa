"""
Condition evaluation for automation rules.

A condition is ``{"field": <dotted path>, "operator": <op>, "value": <str>}``.
The field is resolved against the event payload; a missing intermediate or
terminal value resolves to absent (None). Malformed input never raises:
it evaluates to False.
"""

OPERATORS = ('eq', 'neq', 'gt', 'gte', 'lt', 'lte', 'contains', 'not_contains', 'in', 'not_in')

# Valid condition paths per trigger
TRIGGER_FIELDS = {
    'contact_created': ('contact.source', 'contact.tagNames', 'contact.email'),
    'deal_created': ('deal.value', 'deal.pipelineId', 'deal.stageId'),
    'deal_stage_changed': ('previousStageId', 'newStageId', 'deal.pipelineId'),
    'message_received': ('conversation.channelType', 'message.content', 'contact.tagNames', 'contact.source'),
    'tag_added': ('tag', 'entityType'),
    'task_completed': ('task.type', 'task.priority'),
    'conversation_created': ('conversation.channelType', 'contact.source', 'contact.tagNames'),
}

# Operators that hold when the field is absent
_ABSENT_TRUE = ('neq', 'not_contains', 'not_in')


def resolve_field(payload, path):
    """Walk ``path`` ("contact.source", "items.0.id") through nested dicts/lists."""
    current = payload
    for part in str(path).split('.'):
        if isinstance(current, dict):
            current = current.get(part)
        elif isinstance(current, (list, tuple)) and part.lstrip('-').isdigit():
            index = int(part)
            current = current[index] if -len(current) <= index < len(current) else None
        else:
            return None
        if current is None:
            return None
    return current


def _to_text(value):
    if isinstance(value, bool):
        return 'true' if value else 'false'
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _to_number(value):
    if isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _split_list(value):
    if isinstance(value, (list, tuple, set)):
        items = value
    else:
        items = str(value).split(',')
    return {_to_text(v).strip() for v in items if _to_text(v).strip()}


def _compare(operator, actual, expected):
    left, right = _to_number(actual), _to_number(expected)
    if left is None or right is None:
        return False
    if operator == 'gt':
        return left > right
    if operator == 'gte':
        return left >= right
    if operator == 'lt':
        return left < right
    return left <= right


def evaluate(condition, payload):
    operator = condition.get('operator')
    if operator not in OPERATORS:
        return False

    actual = resolve_field(payload, condition.get('field', ''))
    expected = condition.get('value')
    if expected is None:
        expected = ''

    if actual is None:
        return operator in _ABSENT_TRUE

    if operator in ('gt', 'gte', 'lt', 'lte'):
        return _compare(operator, actual, expected)

    if operator in ('in', 'not_in'):
        allowed = _split_list(expected)
        if isinstance(actual, (list, tuple, set)):
            hit = any(_to_text(a) in allowed for a in actual)
        else:
            hit = _to_text(actual) in allowed
        return hit if operator == 'in' else not hit

    expected = _to_text(expected)

    if isinstance(actual, (list, tuple, set)):
        # Array fields (tag names): membership, not string equality
        hit = expected in [_to_text(a) for a in actual]
        return hit if operator in ('eq', 'contains') else not hit

    actual = _to_text(actual)
    if operator == 'eq':
        return actual == expected
    if operator == 'neq':
        return actual != expected
    if operator == 'contains':
        return expected in actual
    return expected not in actual


def evaluate_conditions(conditions, payload):
    """AND of every condition. An empty list always matches."""
    return all(isinstance(c, dict) and evaluate(c, payload) for c in (conditions or []))
