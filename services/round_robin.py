"""
Round-robin agent selection for ``assign_agent`` rules.

The cursor lives in the ``round_robin_state`` table, one row per rule, so
rotation survives restarts and is shared between worker processes. The
read-modify-write runs under a per-rule in-process lock plus a row lock
(``SELECT ... FOR UPDATE``) on databases that support it.
"""

import threading

import structlog
from sqlalchemy.exc import IntegrityError

from extensions import db
from models.automation import RoundRobinState
from models.user import User

logger = structlog.get_logger(__name__)

_locks = {}
_locks_guard = threading.Lock()


def _rule_lock(rule_id):
    with _locks_guard:
        return _locks.setdefault(rule_id, threading.Lock())


def get_active_agent_ids():
    """All active users, ordered by id for a stable rotation order."""
    return [u.id for u in User.query.filter_by(is_active=True).order_by(User.id.asc()).all()]


def resolve_pool(agent_ids=None):
    """
    Candidate pool in rotation order. An explicit pool keeps its given order
    minus inactive or unknown users; an empty pool means every active user.
    """
    if not agent_ids:
        return get_active_agent_ids()

    ordered = list(dict.fromkeys(agent_ids))
    active = {
        u.id for u in User.query.filter(User.id.in_(ordered), User.is_active.is_(True)).all()
    }
    return [a for a in ordered if a in active]


def _pick_index(state, pool):
    if state is None:
        return 0
    if state.last_agent_id in pool:
        return (pool.index(state.last_agent_id) + 1) % len(pool)
    # Last agent left the pool: the candidate now sitting at its old slot is next in order
    return max(state.last_index, 0) % len(pool)


def next_agent(rule_id, agent_ids=None):
    """
    Advance the rule's cursor and return the selected agent id, or None
    when the candidate pool is empty.
    """
    with _rule_lock(rule_id):
        pool = resolve_pool(agent_ids)
        if not pool:
            logger.warning("round_robin.empty_pool", rule_id=rule_id)
            return None

        for attempt in range(2):
            state = (
                RoundRobinState.query
                .filter_by(rule_id=rule_id)
                .with_for_update()
                .first()
            )
            index = _pick_index(state, pool)
            agent_id = pool[index]

            if state is None:
                state = RoundRobinState(rule_id=rule_id)
                db.session.add(state)
            state.last_index = index
            state.last_agent_id = agent_id

            try:
                db.session.commit()
            except IntegrityError:
                # Another process created the row first; re-read it
                db.session.rollback()
                if attempt:
                    raise
                continue

            logger.info("round_robin.assigned", rule_id=rule_id, agent_id=agent_id, pool_size=len(pool))
            return agent_id


def reset(rule_id):
    """Drop the rule's cursor. Called when the owning rule is deleted."""
    RoundRobinState.query.filter_by(rule_id=rule_id).delete()
