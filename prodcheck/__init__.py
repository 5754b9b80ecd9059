"""Production-readiness checks for the audit-response web app."""

__version__ = "0.1.0"
