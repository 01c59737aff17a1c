"""Gekko console: streaming chat and orchestrator control for the trading API."""

__version__ = "0.1.0"
