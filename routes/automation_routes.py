from flask import Blueprint, request, jsonify
from models.automation import AutomationLog
from routes.auth_routes import token_required, admin_required, request_audit
from services import automation_rules
from services.action_executors import ActionKind
from services.conditions import OPERATORS, TRIGGER_FIELDS
from services.events import Trigger

automation_bp = Blueprint('automation', __name__)

# --- Health Check ---
@automation_bp.route("/automation/health", methods=["GET"])
def automation_health():
    return jsonify({"status": "automation module working"})

# --- Builder metadata for the admin UI ---
@automation_bp.route('/automation/fields', methods=['GET'])
@token_required
def get_fields(current_user):
    return jsonify({
        'triggers': [t.value for t in Trigger],
        'actions': [a.value for a in ActionKind],
        'operators': list(OPERATORS),
        'fields': {trigger: list(fields) for trigger, fields in TRIGGER_FIELDS.items()}
    }), 200

# --- Automation Rules CRUD ---
@automation_bp.route('/automation-rules', methods=['GET'])
@token_required
def get_rules(current_user):
    is_active = request.args.get('is_active')
    limit = request.args.get('limit', 50, type=int)
    offset = request.args.get('offset', 0, type=int)

    entries, total = automation_rules.list_automation_rules(
        trigger=request.args.get('trigger'),
        action=request.args.get('action'),
        is_active=None if is_active is None else is_active.lower() == 'true',
        search=request.args.get('search'),
        limit=limit,
        offset=offset
    )
    return jsonify({
        'total': total,
        'limit': limit,
        'offset': offset,
        'entries': [r.to_dict() for r in entries]
    }), 200

@automation_bp.route('/automation-rules/<rule_id>', methods=['GET'])
@token_required
def get_rule(current_user, rule_id):
    rule = automation_rules.get_automation_rule(rule_id)
    if not rule:
        return jsonify({'message': 'Rule not found'}), 404
    return jsonify(rule.to_dict()), 200

@automation_bp.route('/automation-rules', methods=['POST'])
@admin_required
def create_rule(current_user):
    data = request.get_json(silent=True)
    rule = automation_rules.create_automation_rule(
        data,
        created_by_id=current_user.id,
        audit=request_audit(current_user)
    )
    return jsonify({'message': 'Automation rule created', 'rule': rule.to_dict()}), 201

@automation_bp.route('/automation-rules/<rule_id>', methods=['PATCH'])
@admin_required
def update_rule(current_user, rule_id):
    data = request.get_json(silent=True)
    rule = automation_rules.update_automation_rule(rule_id, data, audit=request_audit(current_user))
    if not rule:
        return jsonify({'message': 'Rule not found'}), 404
    return jsonify({'message': 'Automation rule updated', 'rule': rule.to_dict()}), 200

@automation_bp.route('/automation-rules/<rule_id>', methods=['DELETE'])
@admin_required
def delete_rule(current_user, rule_id):
    rule = automation_rules.delete_automation_rule(rule_id, audit=request_audit(current_user))
    if not rule:
        return jsonify({'message': 'Rule not found'}), 404
    return jsonify({'message': 'Automation rule deleted', 'id': rule_id}), 200

@automation_bp.route('/automation/rules/<rule_id>/toggle', methods=['PUT'])
@admin_required
def toggle_rule(current_user, rule_id):
    rule = automation_rules.toggle_automation_rule(rule_id, audit=request_audit(current_user))
    if not rule:
        return jsonify({'message': 'Rule not found'}), 404

    return jsonify({'message': f'Rule {"enabled" if rule.is_active else "disabled"}', 'is_active': rule.is_active}), 200

@automation_bp.route('/automation/logs', methods=['GET'])
@token_required
def get_logs(current_user):
    rule_id = request.args.get('rule_id')
    status = request.args.get('status')

    query = AutomationLog.query
    if rule_id: query = query.filter(AutomationLog.rule_id == rule_id)
    if status: query = query.filter(AutomationLog.status == status)

    logs = query.order_by(AutomationLog.created_at.desc()).limit(50).all()
    return jsonify([l.to_dict() for l in logs]), 200
