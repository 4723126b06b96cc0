"""
Prediction Market Agent.

An autonomous trading agent for Polymarket. Declarative configuration
selects which decision strategies run; their signals pass through a
risk gate that enforces balance, position and market checks before any
order reaches the exchange.
"""

__version__ = "0.1.0"
