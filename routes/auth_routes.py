from functools import wraps
from flask import jsonify, request
from flask_jwt_extended import get_jwt_identity, verify_jwt_in_request
from extensions import db
from models.user import User
from services.audit_log import AuditContext

ADMIN_ROLES = ['SUPER_ADMIN', 'ADMIN']


# Decorator to verify JWT token and inject the current user
def token_required(f):
    @wraps(f)
    def decorated(*args, **kwargs):
        verify_jwt_in_request()
        current_user = db.session.get(User, get_jwt_identity())
        if not current_user or not current_user.is_active:
            return jsonify({'message': 'User not found!'}), 401
        return f(current_user, *args, **kwargs)
    return decorated


def admin_required(f):
    @wraps(f)
    @token_required
    def decorated(current_user, *args, **kwargs):
        if current_user.role not in ADMIN_ROLES:
            return jsonify({'message': 'Unauthorized'}), 403
        return f(current_user, *args, **kwargs)
    return decorated


def request_audit(current_user):
    """Audit context for a write made through the API."""
    return AuditContext(
        user_id=current_user.id,
        ip_address=request.remote_addr,
        user_agent=request.headers.get('User-Agent')
    )
