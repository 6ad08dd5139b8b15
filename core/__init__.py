"""Core module - configuration and observability shared by every package.

Domain logic lives in the engine packages (reference_resolver, coding_engine,
reconciliation, posting). Ledger-specific logic belongs in /connectors/.
"""

__version__ = "1.0.0"
