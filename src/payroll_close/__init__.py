"""Payroll close: pipeline stages and historical report virtualization."""

__version__ = "0.1.0"
