"""Pydantic models for filter state and combination policy."""

from __future__ import annotations

from enum import Enum
from typing import Any, Iterable, Mapping

from pydantic import BaseModel, ConfigDict, Field, field_validator

RANGE_KEYS = ("salary_min", "salary_max", "experience_min", "experience_max")


class CombinePolicy(str, Enum):
    """How predicates on different fields are joined at the top level."""

    AND = "and"  # browsing and faceting
    OR = "or"  # exploratory analysis


class FilterState(BaseModel):
    """Immutable snapshot of the user's active filters.

    ``values`` maps a catalog field key to the selected labels for that field.
    Every mutation returns a new instance; fields with no selected values are
    dropped so that an empty selection is indistinguishable from no selection.
    """

    model_config = ConfigDict(frozen=True)

    values: dict[str, tuple[str, ...]] = Field(default_factory=dict)
    salary_min: float | None = None
    salary_max: float | None = None
    experience_min: float | None = None
    experience_max: float | None = None

    @field_validator("values", mode="before")
    @classmethod
    def normalize_values(cls, v: Any) -> dict[str, tuple[str, ...]]:
        if v is None:
            return {}
        normalized: dict[str, tuple[str, ...]] = {}
        for field_key, selected in dict(v).items():
            labels = _as_labels(selected)
            if labels:
                normalized[field_key] = labels
        return normalized

    # -- Construction -----------------------------------------------------------

    @classmethod
    def from_mapping(cls, filters: Mapping[str, Any]) -> FilterState:
        """Build a state from a flat mapping of field keys and range bounds.

        Accepts single labels or lists of labels per field; range bounds may
        use either snake_case or camelCase keys (``salary_min``/``salaryMin``).
        """
        values: dict[str, Any] = {}
        ranges: dict[str, Any] = {}
        for key, value in filters.items():
            range_key = _range_key(key)
            if range_key is not None:
                ranges[range_key] = value
            else:
                values[key] = value
        return cls(values=values, **ranges)

    # -- Queries ----------------------------------------------------------------

    @property
    def active_fields(self) -> tuple[str, ...]:
        return tuple(self.values)

    @property
    def ranges(self) -> dict[str, float]:
        """Range bounds that are set, keyed by range name."""
        return {key: getattr(self, key) for key in RANGE_KEYS if getattr(self, key) is not None}

    @property
    def is_empty(self) -> bool:
        return not self.values and not self.ranges

    def values_for(self, field_key: str) -> tuple[str, ...]:
        return self.values.get(field_key, ())

    def active_filter_count(self) -> int:
        """Total number of selected labels across all fields."""
        return sum(len(labels) for labels in self.values.values())

    # -- Mutation (returns new state) --------------------------------------------

    def with_value(self, field_key: str, value: str) -> FilterState:
        """Add one label to a field's selection."""
        return self.with_values(field_key, (*self.values_for(field_key), value))

    def without_value(self, field_key: str, value: str) -> FilterState:
        """Remove one label; the field disappears once nothing is left."""
        remaining = tuple(v for v in self.values_for(field_key) if v != value)
        return self.with_values(field_key, remaining)

    def with_values(self, field_key: str, values: Iterable[str] | str) -> FilterState:
        """Replace a field's selection."""
        updated = dict(self.values)
        updated[field_key] = _as_labels(values)
        return self._replace(values=updated)

    def without_field(self, field_key: str) -> FilterState:
        updated = {k: v for k, v in self.values.items() if k != field_key}
        return self._replace(values=updated)

    def with_range(self, key: str, value: float | None) -> FilterState:
        range_key = _range_key(key)
        if range_key is None:
            raise ValueError(f"Unknown range bound {key!r}; expected one of {RANGE_KEYS}")
        return self._replace(**{range_key: value})

    def cleared(self) -> FilterState:
        return type(self)()

    def _replace(self, **changes: Any) -> FilterState:
        data = {"values": dict(self.values), **{key: getattr(self, key) for key in RANGE_KEYS}}
        data.update(changes)
        return type(self)(**data)


# =============================================================================
# Helpers
# =============================================================================


def _as_labels(selected: Any) -> tuple[str, ...]:
    """Coerce a label or collection of labels into a deduplicated tuple."""
    if selected is None:
        return ()
    if isinstance(selected, str):
        items: Iterable[Any] = (selected,)
    else:
        items = selected
    labels: list[str] = []
    for item in items:
        if item is None or item == "":
            continue
        label = str(item)
        if label not in labels:
            labels.append(label)
    return tuple(labels)


def _range_key(key: str) -> str | None:
    snake = "".join(f"_{ch.lower()}" if ch.isupper() else ch for ch in key)
    return snake if snake in RANGE_KEYS else None
