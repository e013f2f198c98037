"""
Module: garage_services
Responsibility:
    Imperative shell around the pure engines: reads the event log through
    an ``EventStore`` and composes report-level operations.

Architecture position:
    Services -- may import garage_engines, garage_kernel and garage_config.

Usage:
    from garage_services import ReportingFacade, SqlEventStore
"""

from garage_services.event_log import EventLogAccessor, EventStore, SqlEventStore
from garage_services.reporting import (
    DebtReport,
    PartialFailure,
    ReportingFacade,
    StockPeriodReport,
)

__all__ = [
    "EventLogAccessor",
    "EventStore",
    "SqlEventStore",
    "DebtReport",
    "PartialFailure",
    "ReportingFacade",
    "StockPeriodReport",
]
