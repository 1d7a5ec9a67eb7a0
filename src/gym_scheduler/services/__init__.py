"""
Services layer for gym scheduler business logic.
"""

from .capacity_ledger import CapacityLedger
from .class_details import ClassDetailsAssembler, ClassView, Participant
from .scheme_selector import Scheme, SchemeSelector, program_week, week_identifier

__all__ = [
    "CapacityLedger",
    "ClassDetailsAssembler",
    "ClassView",
    "Participant",
    "Scheme",
    "SchemeSelector",
    "program_week",
    "week_identifier",
]
