# Models package
# Importing modules here ensures they are registered with SQLAlchemy Base
from . import profile, notification, audit_log

# Explicit class exports for cleaner imports
from .profile import Profile
from .notification import Notification
from .audit_log import AuditLog

__all__ = [
    "Profile",
    "Notification",
    "AuditLog",
]
