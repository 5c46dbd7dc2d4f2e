"""Cost query construction: date presets and the query builder."""

from .builder import CostQuerySpec, DimensionRef, QuerySpecBuilder
from .date_presets import DATE_PRESETS, TimePeriod, previous_period, resolve_preset
