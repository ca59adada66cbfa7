"""Churrosteria back-office toolkit."""

__version__ = "0.1.0"
