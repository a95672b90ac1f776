"""Simulated stock trading service: virtual cash, live quotes, portfolio ledger."""
