# bloodcore/audit.py
from .models import AuditEvent


def log_event(action, user=None, using="default", **details):
    """
    Create AuditEvent.
    user – caller identity from the session layer; anonymous callers are stored as NULL.
    details – extra dict persisted.
    """
    if user is not None and not getattr(user, "is_authenticated", False):
        user = None
    return AuditEvent.objects.using(using).create(
        user=user,
        action=action,
        details=details,
    )
