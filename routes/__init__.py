from .automation_routes import automation_bp
