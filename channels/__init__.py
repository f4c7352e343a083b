"""Operator-facing transports for the wizards."""
