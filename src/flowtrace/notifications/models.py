"""Lifecycle notifications published by the host runtime."""

from __future__ import annotations
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class PipelineAction(str, Enum):
    """Lifecycle phases of a pipeline (flow) execution."""

    START = "pipeline:start"
    COMPLETE = "pipeline:complete"


class ProcessorAction(str, Enum):
    """Lifecycle phases of a processor invocation."""

    PRE_INVOKE = "processor:pre-invoke"
    POST_INVOKE = "processor:post-invoke"


@dataclass(frozen=True, slots=True)
class PipelineNotification:
    """A flow execution started or completed."""

    action: PipelineAction | str
    correlation_id: str
    pipeline_name: str
    timestamp: datetime | int | None = None
    attributes: Mapping[str, Any] = field(default_factory=dict)
    headers: Mapping[str, str] = field(default_factory=dict)
    error: BaseException | str | None = None


@dataclass(frozen=True, slots=True)
class ProcessorNotification:
    """A processor inside a flow is about to run or has run.

    ``component`` identifies the processor type (``"core:logger"``) and
    ``location`` its position in the flow (``"order-flow/processors/0"``).
    """

    action: ProcessorAction | str
    correlation_id: str
    component: str
    location: str | None = None
    display_name: str | None = None
    timestamp: datetime | int | None = None
    attributes: Mapping[str, Any] = field(default_factory=dict)
    error: BaseException | str | None = None

    @property
    def processor_id(self) -> str:
        """Return the identifier used for policy checks and span matching."""
        if self.location:
            return f"{self.component}/{self.location}"
        return self.component


__all__ = [
    "PipelineAction",
    "PipelineNotification",
    "ProcessorAction",
    "ProcessorNotification",
]
