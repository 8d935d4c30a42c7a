"""Paygate: bearer-token auth with webhook-driven paid entitlement."""

__version__ = "0.1.0"
