"""Configuration model describing which spans are generated."""

from __future__ import annotations
from pydantic import BaseModel, ConfigDict, Field, field_validator
from flowtrace.config._coerce import to_bool, to_str_tuple
from flowtrace.config.defaults import _DEFAULTS


class SpanGenerationConfig(BaseModel):
    """Processor span switch plus the ordered set of excluded processor ids."""

    model_config = ConfigDict(frozen=True)

    generate_processor_spans: bool = Field(
        default=bool(_DEFAULTS["GENERATE_PROCESSOR_SPANS"])
    )
    ignored_processors: tuple[str, ...] = ()

    @field_validator("generate_processor_spans", mode="before")
    @classmethod
    def _coerce_generate(cls, value: object) -> bool:
        return to_bool(value, default=_DEFAULTS["GENERATE_PROCESSOR_SPANS"])

    @field_validator("ignored_processors", mode="before")
    @classmethod
    def _coerce_ignored(cls, value: object) -> tuple[str, ...]:
        return to_str_tuple(value)

    @property
    def excluded(self) -> frozenset[str]:
        """Return the exclusion set used for per-event lookups."""
        return frozenset(self.ignored_processors)


__all__ = ["SpanGenerationConfig"]
