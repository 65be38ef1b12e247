"""
Quote Pricing Package

A deterministic pricing rules engine for service quotes.
Turns configured pricing rules plus customer answers and AI-extracted signals
into an itemized, auditable price with a calculation trace.
"""

__version__ = "1.0.0"
