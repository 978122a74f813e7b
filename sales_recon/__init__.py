"""Sales report reconciliation: CSV/Excel exports -> canonical records -> KPIs."""

__version__ = "0.1.0"
