"""Audit service: buffered ingestion of API audit events and aggregate reports."""

__version__ = "0.1.0"
