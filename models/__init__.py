from .user import User
from .contact import Contact, Tag
from .pipeline import Pipeline, PipelineStage
from .crm import Deal
from .task import Task
from .conversation import Conversation
from .message import Message
from .notification import Notification
from .activity_log import ActivityLog
from .automation import AutomationRule, AutomationLog, RoundRobinState

# Ensure all models are imported here so SQLAlchemy knows about them
