"""Credential and session security core for the billing API."""

__version__ = "0.1.0"
