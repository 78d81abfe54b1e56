"""Ledger integration: record conversion, per-account sync and the worker channel."""
