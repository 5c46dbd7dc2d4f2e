"""
Cost Analysis

Period-over-period cost analysis for Azure clients: query building, response
normalization, comparison math, display formatting and anonymization.
"""

__version__ = "1.0.0"
__author__ = "Cost Analysis Team"
