"""Hardenforge: upstream digest reconciliation and a hardened image pipeline."""

__version__ = "0.1.0"
