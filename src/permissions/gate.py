"""
Permission gate for cost queries.

A small state machine deciding whether a query may run or whether the
operator must first complete the cost-read permission setup. Every
transition is operator-initiated; nothing is retried automatically.
"""

import logging
from enum import Enum

from ..providers.base import (
    AccessDeniedError,
    EnvironmentSetupStatus,
    PermissionStateError,
)

logger = logging.getLogger(__name__)


class PermissionState(Enum):
    CHECKING = "checking"
    NEEDS_SETUP = "needs_setup"
    READY = "ready"
    ERROR = "error"


class PermissionGate:
    """Tracks readiness of cost analysis for the selected client."""

    def __init__(self):
        self.state = PermissionState.CHECKING
        self.environments_needing_setup: list[EnvironmentSetupStatus] = []
        self.last_error: Exception | None = None

    @property
    def may_submit(self) -> bool:
        """Queries are blocked only while setup is outstanding."""
        return self.state != PermissionState.NEEDS_SETUP

    @property
    def requires_setup(self) -> bool:
        return self.state == PermissionState.NEEDS_SETUP

    def _transition(self, new_state: PermissionState):
        if new_state != self.state:
            logger.info(f"Permission state {self.state.value} -> {new_state.value}")
        self.state = new_state

    def reset(self):
        """Return to the initial state, e.g. after the client changed."""
        self.environments_needing_setup = []
        self.last_error = None
        self._transition(PermissionState.CHECKING)

    def record_success(self):
        """A query succeeded."""
        self.environments_needing_setup = []
        self.last_error = None
        self._transition(PermissionState.READY)

    def record_failure(self, error: Exception):
        """
        A query failed.

        Access-denied failures move to needs_setup with the environments that
        need attention; any other failure moves to error.
        """
        self.last_error = error
        if isinstance(error, AccessDeniedError):
            self.environments_needing_setup = list(error.environments)
            self._transition(PermissionState.NEEDS_SETUP)
        else:
            self.environments_needing_setup = []
            self._transition(PermissionState.ERROR)

    def recheck(self):
        """
        Operator confirmed setup is complete.

        Moves to ready without re-running the query; the caller re-submits
        if fresh data is needed.

        Raises:
            PermissionStateError: If setup was not outstanding
        """
        if self.state != PermissionState.NEEDS_SETUP:
            raise PermissionStateError(
                f"Recheck is only possible while setup is required (state: {self.state.value})"
            )
        self.environments_needing_setup = []
        self._transition(PermissionState.READY)

    def record_permission_check(self, environment_id: str, has_access: bool):
        """Result of an explicit per-environment permission check."""
        if not has_access:
            logger.info(f"Environment {environment_id} still lacks cost access")
            return
        self.environments_needing_setup = [
            env for env in self.environments_needing_setup if env.azure_environment_id != environment_id
        ]
        self._transition(PermissionState.READY)
