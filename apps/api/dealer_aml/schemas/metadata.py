"""Typed metadata payloads stored in alert and rule JSON columns.

Known optional fields are checked; everything else is carried through
unchanged in ``extra``.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator


class _TaggedMetadata(BaseModel):
    model_config = ConfigDict(extra="forbid")

    extra: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _collect_unknown_keys(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        known = set(cls.model_fields)
        extra = dict(data.get("extra") or {})
        payload = {}
        for key, value in data.items():
            if key == "extra":
                continue
            if key in known:
                payload[key] = value
            else:
                extra[key] = value
        payload["extra"] = extra
        return payload

    def to_payload(self) -> dict[str, Any]:
        """Flatten back into the JSON column shape."""
        payload = dict(self.extra)
        payload.update(self.model_dump(exclude={"extra"}, exclude_none=True))
        return payload


class AlertMetadata(_TaggedMetadata):
    """Detector-supplied context for one alert."""

    alert_code: str | None = Field(None, max_length=10)  # tipo_alerta override
    operation_type_code: str | None = Field(None, max_length=10)
    priority: str | None = Field(None, max_length=2)
    notice_reference: str | None = Field(None, max_length=64)
    monetary_instrument_code: str | None = Field(None, max_length=10)
    description: str | None = Field(None, max_length=1000)


class RuleMetadata(_TaggedMetadata):
    """Filing hints attached to an alert rule."""

    sat_alert_code: str | None = Field(None, max_length=10)
    operation_type_code: str | None = Field(None, max_length=10)
