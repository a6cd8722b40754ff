"""Proof-of-work CAPTCHA challenge and token lifecycle engine."""

__version__ = "0.1.0"
