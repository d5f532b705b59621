"""
Pure domain layer.

Value objects and helpers with NO dependencies on the ORM, the database,
or I/O (SystemClock excepted).
"""

from backoffice_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from backoffice_kernel.domain.currency import (
    BASE_CURRENCY,
    CurrencyInfo,
    CurrencyRegistry,
    round_money,
)
from backoffice_kernel.domain.workflow import Guard, Transition, Workflow

__all__ = [
    "BASE_CURRENCY",
    "Clock",
    "CurrencyInfo",
    "CurrencyRegistry",
    "DeterministicClock",
    "Guard",
    "SystemClock",
    "Transition",
    "Workflow",
    "round_money",
]
