from .content import ContentType, InteractionKind, ToggleResult
from .notification import NotificationEvent, NotificationType

__all__ = [
    'ContentType',
    'InteractionKind',
    'ToggleResult',
    'NotificationEvent',
    'NotificationType'
]
