"""Completion outcomes reported alongside end notifications."""

from __future__ import annotations
from dataclasses import dataclass
from opentelemetry.trace import Span, Status, StatusCode
from flowtrace.tracing.attributes import ERROR_TYPE


@dataclass(frozen=True, slots=True)
class Outcome:
    """Success or failure of a pipeline or processor execution."""

    success: bool = True
    error_message: str | None = None
    error_type: str | None = None
    exception: BaseException | None = None

    @classmethod
    def ok(cls) -> Outcome:
        """Return a successful outcome."""
        return cls()

    @classmethod
    def failure(
        cls,
        error: BaseException | str | None = None,
        *,
        error_type: str | None = None,
    ) -> Outcome:
        """Build a failed outcome from an exception or a message."""
        if isinstance(error, BaseException):
            return cls(
                success=False,
                error_message=str(error) or type(error).__name__,
                error_type=error_type or type(error).__qualname__,
                exception=error,
            )
        return cls(success=False, error_message=error, error_type=error_type)

    @classmethod
    def from_error(
        cls, error: BaseException | str | None, *, error_type: str | None = None
    ) -> Outcome:
        """Return ``ok`` when ``error`` is empty, otherwise a failure."""
        if error is None or error == "":
            return cls.ok()
        return cls.failure(error, error_type=error_type)


def apply_outcome(span: Span, outcome: Outcome | None) -> None:
    """Record ``outcome`` on ``span`` as its final status."""
    if outcome is None or outcome.success:
        span.set_status(Status(StatusCode.OK))
        return
    if outcome.exception is not None:
        span.record_exception(outcome.exception)
    if outcome.error_type:
        span.set_attribute(ERROR_TYPE, outcome.error_type)
    span.set_status(Status(StatusCode.ERROR, outcome.error_message))


__all__ = ["Outcome", "apply_outcome"]
