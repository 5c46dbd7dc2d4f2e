"""Shared utilities for cost analysis."""
