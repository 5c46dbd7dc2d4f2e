"""Display-layer helpers: formatting, anonymization and its activation sequence."""

from .activation import KeySequenceDetector
from .anonymizer import AnonymizationState, anonymize_item, anonymize_items
from .formatters import format_currency, format_percentage, format_table_currency
