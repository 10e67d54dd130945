"""SecAlert: rule-based security alert dispatch."""

__version__ = "1.0.0"
