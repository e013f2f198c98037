"""
Garage Kernel

Read-side core for the garage reconciliation engine:
- Typed exceptions with machine-readable codes
- Structured JSON logging
- Immutable domain records and reporting periods
- SQLAlchemy models and read-only selectors
"""

__version__ = "0.1.0"
