"""Adapters from host notifications to notification handler calls."""

from __future__ import annotations
import logging
from enum import Enum
from typing import TypeVar
from flowtrace.notifications.models import (
    PipelineAction,
    PipelineNotification,
    ProcessorAction,
    ProcessorNotification,
)
from flowtrace.tracing.handler import NotificationHandler
from flowtrace.tracing.outcome import Outcome


logger = logging.getLogger(__name__)

_ActionT = TypeVar("_ActionT", bound=Enum)


def _coerce_action(kind: type[_ActionT], value: object) -> _ActionT | None:
    if isinstance(value, kind):
        return value
    try:
        return kind(value)
    except (TypeError, ValueError):
        return None


class PipelineNotificationListener:
    """Forward pipeline start/complete notifications to the handler."""

    def __init__(
        self, handler: NotificationHandler, *, tracing_enabled: bool = True
    ) -> None:
        """Bind the listener to ``handler``."""
        self._handler = handler
        self._tracing_enabled = tracing_enabled

    def on_notification(self, notification: object) -> None:
        """Dispatch ``notification``; anything unrecognised is ignored."""
        if not self._tracing_enabled:
            return
        if not isinstance(notification, PipelineNotification):
            logger.debug("Ignoring unsupported notification %r.", notification)
            return
        action = _coerce_action(PipelineAction, notification.action)
        try:
            if action is PipelineAction.START:
                self._handler.on_pipeline_start(
                    notification.correlation_id,
                    notification.pipeline_name,
                    notification.attributes,
                    timestamp=notification.timestamp,
                    carrier=notification.headers,
                )
            elif action is PipelineAction.COMPLETE:
                self._handler.on_pipeline_end(
                    notification.correlation_id,
                    notification.pipeline_name,
                    Outcome.from_error(notification.error),
                    timestamp=notification.timestamp,
                )
            else:
                logger.debug(
                    "Ignoring pipeline notification with action %r.",
                    notification.action,
                )
        except Exception:
            logger.exception(
                "Failed to trace pipeline notification for %s (correlation id %s).",
                notification.pipeline_name,
                notification.correlation_id,
            )


class ProcessorNotificationListener:
    """Forward processor pre/post invoke notifications to the handler."""

    def __init__(
        self, handler: NotificationHandler, *, tracing_enabled: bool = True
    ) -> None:
        """Bind the listener to ``handler``."""
        self._handler = handler
        self._tracing_enabled = tracing_enabled

    def on_notification(self, notification: object) -> None:
        """Dispatch ``notification``; anything unrecognised is ignored."""
        if not self._tracing_enabled:
            return
        if not isinstance(notification, ProcessorNotification):
            logger.debug("Ignoring unsupported notification %r.", notification)
            return
        action = _coerce_action(ProcessorAction, notification.action)
        try:
            if action is ProcessorAction.PRE_INVOKE:
                self._handler.on_processor_start(
                    notification.correlation_id,
                    notification.processor_id,
                    notification.attributes,
                    name=notification.display_name or notification.component,
                    timestamp=notification.timestamp,
                )
            elif action is ProcessorAction.POST_INVOKE:
                self._handler.on_processor_end(
                    notification.correlation_id,
                    notification.processor_id,
                    Outcome.from_error(notification.error),
                    timestamp=notification.timestamp,
                )
            else:
                logger.debug(
                    "Ignoring processor notification with action %r.",
                    notification.action,
                )
        except Exception:
            logger.exception(
                "Failed to trace processor notification for %s (correlation id %s).",
                notification.processor_id,
                notification.correlation_id,
            )


__all__ = ["PipelineNotificationListener", "ProcessorNotificationListener"]
