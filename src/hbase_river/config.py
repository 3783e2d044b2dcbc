"""RiverSettings: validated configuration of one HBase river."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .exceptions import RiverConfigurationError

SETTINGS_SECTION = "hbase"

DEFAULT_INTERVAL_MS = 600_000
DEFAULT_BATCH_SIZE = 100
DEFAULT_POLL_GRANULARITY_MS = 1_000

EventTimePolicy = Literal["watermark", "pass_start"]


class RiverSettings(BaseModel):
    """Settings read from the ``hbase`` section of the river definition.

    Field aliases follow the keys users write in that section (``idField``,
    ``batchSize`` ...). ``index`` defaults to the river name and ``type`` to the
    table name; :meth:`from_river_settings` fills those in.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    hosts: str
    table: str
    index: str
    doc_type: str = Field(alias="type")
    id_field: str | None = Field(default=None, alias="idField")
    interval_ms: int = Field(default=DEFAULT_INTERVAL_MS, alias="interval", gt=0)
    batch_size: int = Field(default=DEFAULT_BATCH_SIZE, alias="batchSize", gt=0)
    poll_granularity_ms: int = Field(
        default=DEFAULT_POLL_GRANULARITY_MS, alias="pollGranularity", gt=0
    )
    max_in_flight: int = Field(default=1, alias="maxInFlight", gt=0)
    retry_attempts: int = Field(default=1, alias="retryAttempts", ge=1)
    event_time: EventTimePolicy = Field(default="watermark", alias="eventTime")

    @field_validator("hosts", "table", "index", "doc_type")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value

    @field_validator("id_field")
    @classmethod
    def _blank_id_field_is_none(cls, value: str | None) -> str | None:
        if value is not None and not value.strip():
            return None
        return value

    @property
    def interval_seconds(self) -> float:
        return self.interval_ms / 1000

    @property
    def poll_granularity_seconds(self) -> float:
        return self.poll_granularity_ms / 1000

    @classmethod
    def from_river_settings(
        cls, river_name: str, settings: Mapping[str, Any]
    ) -> RiverSettings:
        """Build settings from a river definition such as
        ``{"type": "hbase", "hbase": {"hosts": "...", "table": "..."}}``.

        Raises:
            RiverConfigurationError: a required key is missing or blank, or a
                numeric value is out of range.
        """
        section = settings.get(SETTINGS_SECTION) or {}
        if not isinstance(section, Mapping):
            raise RiverConfigurationError(
                f"River setting {SETTINGS_SECTION!r} must be an object"
            )
        values = {k: v for k, v in section.items() if v is not None}
        values.setdefault("index", river_name)
        if "type" not in values and "table" in values:
            values["type"] = values["table"]
        try:
            return cls.model_validate(values)
        except ValidationError as exc:
            errors: dict[str, list[str]] = {}
            for error in exc.errors():
                key = ".".join(str(part) for part in error["loc"]) or "__root__"
                errors.setdefault(key, []).append(error["msg"])
            raise RiverConfigurationError(errors) from exc
