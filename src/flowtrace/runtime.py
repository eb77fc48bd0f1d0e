"""Metadata describing the host runtime that executes the traced flows."""

from __future__ import annotations
import os
import platform
import socket
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any


@dataclass(frozen=True, slots=True)
class HostRuntimeInfo:
    """Immutable facts about the host process merged into the resource."""

    app_name: str | None = None
    runtime_name: str = field(default_factory=platform.python_implementation)
    runtime_version: str = field(default_factory=platform.python_version)
    host_name: str | None = None
    working_directory: str | None = None
    process_id: int | None = None

    @classmethod
    def detect(cls, *, app_name: str | None = None) -> HostRuntimeInfo:
        """Describe the current process."""
        if app_name is None and sys.argv and sys.argv[0]:
            app_name = Path(sys.argv[0]).stem or None
        return cls(
            app_name=app_name,
            host_name=socket.gethostname() or None,
            working_directory=os.getcwd(),
            process_id=os.getpid(),
        )

    def to_resource_attributes(self) -> dict[str, Any]:
        """Return resource attributes for the populated fields."""
        attributes: dict[str, Any] = {
            "process.runtime.name": self.runtime_name,
            "process.runtime.version": self.runtime_version,
        }
        if self.app_name:
            attributes["flowtrace.app.name"] = self.app_name
        if self.host_name:
            attributes["host.name"] = self.host_name
        if self.working_directory:
            attributes["flowtrace.app.working_directory"] = self.working_directory
        if self.process_id is not None:
            attributes["process.pid"] = self.process_id
        return attributes


__all__ = ["HostRuntimeInfo"]
