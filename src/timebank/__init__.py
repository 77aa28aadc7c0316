"""Timebank: time-credit session booking and ledger service."""
