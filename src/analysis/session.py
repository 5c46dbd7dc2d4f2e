"""
Cost analysis session.

One session corresponds to one cost analysis page: it owns the query being
edited, the selected client, the permission gate, the latest result and the
anonymization flag. Nothing here is shared between sessions.
"""

import logging
import time
from collections.abc import Callable
from datetime import date, datetime

from ..display.activation import KeySequenceDetector, Scheduler
from ..display.anonymizer import AnonymizationState, anonymize_items
from ..permissions.gate import PermissionGate, PermissionState
from ..providers.base import (
    BillingBackend,
    CostAnalysisError,
    NoClientSelectedError,
    PermissionStateError,
    RequestInProgressError,
    SetupInstructions,
    TimeGranularity,
)
from ..query.builder import CostQuerySpec, QuerySpecBuilder
from ..utils.data_normalizer import CostDataNormalizer
from .calendar import CalendarMonth, build_cost_calendar
from .models import CostAnalysisResult, CostLineItem
from .table import CostTableView

logger = logging.getLogger(__name__)

QUERY = "query"
INSTRUCTIONS = "setup-instructions"
PERMISSION_CHECK = "permission-check"


class CostAnalysisSession:
    """State and actions of a single cost analysis page."""

    def __init__(
        self,
        backend: BillingBackend,
        builder: QuerySpecBuilder | None = None,
        normalizer: CostDataNormalizer | None = None,
        client_id: str | None = None,
        include_previous_period: bool = True,
        activation_key: str = "a",
        activation_window: float = 2.0,
        activation_presses: int = 3,
        scheduler: Scheduler | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.backend = backend
        self.builder = builder or QuerySpecBuilder()
        self.normalizer = normalizer or CostDataNormalizer()
        self.client_id = client_id
        self.include_previous_period = include_previous_period

        self.gate = PermissionGate()
        self.table = CostTableView()
        self.anonymization = AnonymizationState()
        self.show_calendar = self.builder.granularity == TimeGranularity.DAILY

        self.result: CostAnalysisResult | None = None
        self.last_error: Exception | None = None
        self._in_flight: set[str] = set()

        self.detector = KeySequenceDetector(
            on_activate=self.anonymization.toggle,
            key=activation_key,
            window_seconds=activation_window,
            required_presses=activation_presses,
            clock=clock,
            scheduler=scheduler,
        )

    @classmethod
    def from_config(cls, backend: BillingBackend, config, now: datetime | date | None = None, **kwargs):
        """Create a session with query defaults taken from AnalysisConfig."""
        query_defaults = config.query
        anonymization = config.anonymization
        builder = QuerySpecBuilder(
            preset=query_defaults.get("default_preset", "lastMonth"),
            granularity=query_defaults.get("default_granularity", "Daily"),
            grouping=list(query_defaults.get("default_grouping", ["ResourceId"])),
            metric=query_defaults.get("aggregation_metric", "PreTaxCost"),
            now=now,
        )
        return cls(
            backend,
            builder=builder,
            normalizer=CostDataNormalizer(config.default_currency),
            include_previous_period=bool(query_defaults.get("include_previous_period", True)),
            activation_key=anonymization.get("activation_key", "a"),
            activation_window=float(anonymization.get("window_seconds", 2.0)),
            activation_presses=int(anonymization.get("required_presses", 3)),
            **kwargs,
        )

    # Client context

    def select_client(self, client_id: str | None):
        """Change the selected client; results and permission state start over."""
        if client_id == self.client_id:
            return
        logger.info(f"Selected client changed to {client_id}")
        self.client_id = client_id
        self.result = None
        self.last_error = None
        self.gate.reset()

    # Query editing

    def set_granularity(self, value: str | TimeGranularity):
        """Change granularity; aggregated queries turn the calendar off."""
        self.builder.set_granularity(value)
        if self.builder.granularity == TimeGranularity.NONE:
            self.show_calendar = False

    @property
    def calendar_enabled(self) -> bool:
        return self.show_calendar and self.builder.granularity == TimeGranularity.DAILY

    @property
    def is_busy(self) -> bool:
        return QUERY in self._in_flight

    def _begin(self, operation: str):
        if operation in self._in_flight:
            raise RequestInProgressError(operation)
        self._in_flight.add(operation)

    # Actions

    async def run_analysis(self) -> CostAnalysisResult | None:
        """
        Submit the current query.

        Returns:
            The normalized result, or None when the request failed; the
            failure is then reflected in the permission gate and last_error.

        Raises:
            NoClientSelectedError: If no client is selected
            RequestInProgressError: If a query is already outstanding
            PermissionStateError: If permission setup is still required
        """
        if not self.client_id:
            raise NoClientSelectedError("Please select a client first")
        if not self.gate.may_submit:
            raise PermissionStateError("Cost analysis setup must be completed before running queries")

        self._begin(QUERY)
        try:
            spec = self.builder.serialize()
            logger.info(f"🔍 Running cost analysis for client {self.client_id}: {spec.describe()}")
            try:
                raw = await self.backend.query_costs(
                    self.client_id, spec.to_wire(), self.include_previous_period
                )
            except CostAnalysisError as e:
                logger.error(f"Cost analysis failed for client {self.client_id}: {e}")
                self.last_error = e
                self.gate.record_failure(e)
                return None

            self.result = self.normalizer.normalize_response(
                raw, query=spec, include_previous_period=self.include_previous_period
            )
            self.last_error = None
            self.gate.record_success()
            return self.result
        finally:
            self._in_flight.discard(QUERY)

    async def get_setup_instructions(self, environment_id: str) -> SetupInstructions | None:
        """Fetch setup instructions for an environment; None if unavailable."""
        self._begin(INSTRUCTIONS)
        try:
            raw = await self.backend.get_setup_instructions(environment_id)
        except CostAnalysisError as e:
            logger.error(f"Failed to get setup instructions for {environment_id}: {e}")
            return None
        finally:
            self._in_flight.discard(INSTRUCTIONS)
        return self.normalizer.normalize_setup_instructions(raw, environment_id)

    async def check_environment_permissions(self, environment_id: str) -> bool | None:
        """Re-check one environment; None if the check itself failed."""
        self._begin(PERMISSION_CHECK)
        try:
            has_access = await self.backend.check_cost_permissions(environment_id)
        except CostAnalysisError as e:
            logger.error(f"Failed to check permissions for {environment_id}: {e}")
            return None
        finally:
            self._in_flight.discard(PERMISSION_CHECK)
        self.gate.record_permission_check(environment_id, has_access)
        return has_access

    def recheck_permissions(self):
        self.gate.recheck()

    # Display

    @property
    def state(self) -> PermissionState:
        return self.gate.state

    @property
    def query_preview(self) -> CostQuerySpec | None:
        """The snapshot that produced the current result."""
        return self.result.query if self.result else None

    def handle_key(self, key: str) -> bool:
        """Feed a keypress to the hidden anonymization toggle."""
        return self.detector.press(key)

    def toggle_anonymization(self) -> bool:
        return self.anonymization.toggle()

    def display_items(self) -> list[CostLineItem]:
        """Sorted, filtered and (when enabled) anonymized rows for display."""
        if self.result is None:
            return []
        rows = self.table.apply(self.result.items)
        if self.anonymization.enabled:
            rows = anonymize_items(rows)
        return rows

    def calendar(self) -> list[CalendarMonth]:
        if not self.calendar_enabled or self.result is None:
            return []
        return build_cost_calendar(self.display_items())

    def close(self):
        self.detector.close()
