"""
Deletion marker column policy.

Interprets the single marker field of a paranoid model: whether a value means
"deleted", and which value to write when deleting or recovering.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .config import ColumnType, ParanoidConfig, get_config
from .exceptions import ParanoidConfigurationError


def utcnow() -> datetime:
    # Naive UTC, matching what DateTime columns hand back on most backends
    return datetime.now(timezone.utc).replace(tzinfo=None)


class ColumnPolicy(BaseModel):
    """How a model's deletion marker is read and written."""

    model_config = ConfigDict(frozen=True)

    column: str = Field("deleted_at", min_length=1)
    column_type: ColumnType = ColumnType.TIME
    deleted_value: Optional[str] = None

    @model_validator(mode="after")
    def check_sentinel(self) -> "ColumnPolicy":
        if self.column_type is ColumnType.STRING and self.deleted_value is None:
            raise ParanoidConfigurationError(
                f"String marker column '{self.column}' requires a deleted_value"
            )
        return self

    @property
    def is_time(self) -> bool:
        return self.column_type is ColumnType.TIME

    @property
    def is_string(self) -> bool:
        return self.column_type is ColumnType.STRING

    def is_deleted(self, marker: Any) -> bool:
        """Return True if ``marker`` marks a record as deleted."""
        if self.is_string:
            return marker is not None and marker == self.deleted_value
        return marker is not None

    def deletion_value(self, now: Optional[datetime] = None) -> Any:
        """Return the marker value to write on delete."""
        if self.column_type is ColumnType.TIME:
            return now or utcnow()
        if self.column_type is ColumnType.BOOLEAN:
            return True
        return self.deleted_value

    def cleared_value(self) -> None:
        return None


class ParanoidOptions(BaseModel):
    """
    Per-model paranoid options.

    Unset fields are filled from the global ``ParanoidConfig`` when the model
    class is created.

    Usage:
        class Document(ParanoidMixin, Base):
            __paranoid__ = ParanoidOptions(
                column="status",
                column_type="string",
                deleted_value="deleted",
            )
    """

    model_config = ConfigDict(frozen=True)

    column: Optional[str] = None
    column_type: Optional[ColumnType] = None
    deleted_value: Optional[str] = None
    recover_dependent_associations: Optional[bool] = None
    dependent_recovery_window: Optional[timedelta] = None
    dependent_destroy_paranoid_only: Optional[bool] = None
    double_tap_destroys_fully: Optional[bool] = None

    def resolve(self, config: Optional[ParanoidConfig] = None) -> "ParanoidOptions":
        """Return a copy with every unset field taken from ``config``."""
        config = config or get_config()
        defaults = {
            "column": config.default_column,
            "column_type": config.default_column_type,
            "recover_dependent_associations": config.recover_dependent_associations,
            "dependent_recovery_window": config.default_recovery_window,
            "dependent_destroy_paranoid_only": config.dependent_destroy_paranoid_only,
            "double_tap_destroys_fully": config.double_tap_destroys_fully,
        }
        values = self.model_dump()
        for key, default in defaults.items():
            if values.get(key) is None:
                values[key] = default
        return ParanoidOptions(**values)

    def policy(self) -> ColumnPolicy:
        """Build the column policy. Raises on an incomplete configuration."""
        if self.column is None or self.column_type is None:
            return self.resolve().policy()
        return ColumnPolicy(
            column=self.column,
            column_type=self.column_type,
            deleted_value=self.deleted_value,
        )
