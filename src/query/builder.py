"""
Cost query construction.

Holds the canonical cost query descriptor and the mutable builder that the
operator edits before submitting. The builder produces frozen snapshots in
the Azure Cost Management Query API shape.
"""

import json
import logging
from datetime import date, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator

from ..providers.base import Dimension, QueryValidationError, TimeGranularity
from .date_presets import TimePeriod, previous_period, resolve_preset, utc_today

logger = logging.getLogger(__name__)


class DimensionRef(BaseModel):
    """Reference to a grouping dimension."""

    model_config = ConfigDict(frozen=True)

    kind: str = "Dimension"
    name: Dimension

    def to_wire(self) -> dict[str, str]:
        return {"type": self.kind, "name": self.name.value}


class Aggregation(BaseModel):
    """Aggregated cost metric."""

    model_config = ConfigDict(frozen=True)

    metric: str = "PreTaxCost"
    function: str = "Sum"


class CostQuerySpec(BaseModel):
    """Immutable snapshot of a cost query as sent to the billing backend."""

    model_config = ConfigDict(frozen=True)

    kind: str = "Usage"
    timeframe: str = "Custom"
    time_period: TimePeriod
    granularity: TimeGranularity = TimeGranularity.DAILY
    aggregation: Aggregation = Aggregation()
    grouping: tuple[DimensionRef, ...] = ()

    @field_validator("grouping")
    @classmethod
    def validate_grouping(cls, v: tuple[DimensionRef, ...]) -> tuple[DimensionRef, ...]:
        """Grouping dimensions must be unique by name."""
        names = [ref.name for ref in v]
        if len(names) != len(set(names)):
            raise ValueError("Grouping dimensions must be unique")
        return v

    @property
    def dimension_names(self) -> list[str]:
        return [ref.name.value for ref in self.grouping]

    @property
    def calendar_enabled(self) -> bool:
        """Per-day display only makes sense for daily granularity."""
        return self.granularity == TimeGranularity.DAILY

    def to_wire(self) -> dict[str, Any]:
        """Serialize into the Azure Cost Management Query API structure."""
        return {
            "type": self.kind,
            "timeframe": self.timeframe,
            "timePeriod": self.time_period.to_wire(),
            "dataset": {
                "granularity": self.granularity.value,
                "aggregation": {
                    "totalCost": {
                        "name": self.aggregation.metric,
                        "function": self.aggregation.function,
                    }
                },
                "grouping": [ref.to_wire() for ref in self.grouping],
            },
        }

    def describe(self) -> str:
        """Human-readable one-line description of the query."""
        wire_period = self.time_period.to_wire()
        summary = f"Cost analysis using {self.kind} data from {wire_period['from']} to {wire_period['to']}"
        if self.grouping:
            summary += f" grouped by {', '.join(self.dimension_names)}"
        summary += f" with {self.granularity.value} granularity"
        return summary

    def comparison_period(self) -> TimePeriod:
        return previous_period(self.time_period)


def parse_dimension(name: str | Dimension) -> Dimension:
    """Accept a Dimension, its wire value, or its enum name (case-insensitive)."""
    if isinstance(name, Dimension):
        return name
    for dimension in Dimension:
        if name in (dimension.value, dimension.name) or name.lower() == dimension.value.lower():
            return dimension
    available = ", ".join(d.value for d in Dimension)
    raise QueryValidationError(f"Unknown dimension '{name}'. Available dimensions: {available}")


def parse_granularity(value: str | TimeGranularity) -> TimeGranularity:
    if isinstance(value, TimeGranularity):
        return value
    for granularity in TimeGranularity:
        if value.lower() == granularity.value.lower():
            return granularity
    raise QueryValidationError(f"Unknown granularity '{value}'. Use 'None' or 'Daily'")


class QuerySpecBuilder:
    """Mutable query state edited by the operator before submission."""

    def __init__(
        self,
        preset: str = "lastMonth",
        granularity: str | TimeGranularity = TimeGranularity.DAILY,
        grouping: list[str] | None = None,
        metric: str = "PreTaxCost",
        now: datetime | date | None = None,
    ):
        self.kind = "Usage"
        self.timeframe = "Custom"
        self.aggregation = Aggregation(metric=metric)
        self._granularity = parse_granularity(granularity)
        self._grouping: list[DimensionRef] = []
        for name in grouping if grouping is not None else [Dimension.RESOURCE_ID.value]:
            dimension = parse_dimension(name)
            if dimension not in self.selected_dimensions:
                self._grouping.append(DimensionRef(name=dimension))

        self.selected_preset: str | None = None
        self.use_custom_timeframe = False
        self.time_period: TimePeriod = resolve_preset(preset, now)
        self.selected_preset = preset

    @property
    def granularity(self) -> TimeGranularity:
        return self._granularity

    @property
    def grouping(self) -> list[DimensionRef]:
        return list(self._grouping)

    @property
    def selected_dimensions(self) -> list[Dimension]:
        return [ref.name for ref in self._grouping]

    def set_preset(self, key: str, now: datetime | date | None = None):
        """Apply a date preset; clears custom mode."""
        self.time_period = resolve_preset(key, now)
        self.selected_preset = key
        self.use_custom_timeframe = False
        logger.debug(f"Applied preset {key}: {self.time_period.to_wire()}")

    def enable_custom(self):
        """Switch to custom range mode; clears the preset selection."""
        self.use_custom_timeframe = True
        self.selected_preset = None

    def set_custom_range(self, start: date | datetime, end: date | datetime):
        """Set an explicit inclusive range; clears the preset selection."""
        start_date, end_date = utc_today(start), utc_today(end)
        if start_date > end_date:
            raise QueryValidationError(f"Start date {start_date} must not be after end date {end_date}")
        self.time_period = TimePeriod.from_dates(start_date, end_date)
        self.enable_custom()

    def set_granularity(self, value: str | TimeGranularity):
        self._granularity = parse_granularity(value)

    def toggle_dimension(self, name: str | Dimension) -> bool:
        """
        Add the dimension if absent, remove it if present.

        Returns:
            True if the dimension is selected after the call
        """
        dimension = parse_dimension(name)
        if dimension in self.selected_dimensions:
            self._grouping = [ref for ref in self._grouping if ref.name != dimension]
            return False
        self._grouping.append(DimensionRef(name=dimension))
        return True

    def serialize(self) -> CostQuerySpec:
        """Freeze the current state into the exact query sent on the wire."""
        return CostQuerySpec(
            kind=self.kind,
            timeframe=self.timeframe,
            time_period=self.time_period,
            granularity=self._granularity,
            aggregation=self.aggregation,
            grouping=tuple(self._grouping),
        )

    def describe(self) -> str:
        return self.serialize().describe()

    def preview_json(self) -> str:
        """Pretty-printed wire form for query preview."""
        return json.dumps(self.serialize().to_wire(), indent=2)
