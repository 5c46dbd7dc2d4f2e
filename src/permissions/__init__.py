"""Cost-read permission gating."""

from .gate import PermissionGate, PermissionState
