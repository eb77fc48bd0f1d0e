"""Host runtime notification models, listeners and registry."""

from flowtrace.notifications.listeners import (
    PipelineNotificationListener,
    ProcessorNotificationListener,
)
from flowtrace.notifications.models import (
    PipelineAction,
    PipelineNotification,
    ProcessorAction,
    ProcessorNotification,
)
from flowtrace.notifications.registry import (
    InMemoryListenerRegistry,
    NotificationListener,
    NotificationListenerRegistry,
)


__all__ = [
    "InMemoryListenerRegistry",
    "NotificationListener",
    "NotificationListenerRegistry",
    "PipelineAction",
    "PipelineNotification",
    "PipelineNotificationListener",
    "ProcessorAction",
    "ProcessorNotification",
    "ProcessorNotificationListener",
]
