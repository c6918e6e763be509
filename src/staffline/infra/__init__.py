"""Staffline infrastructure adapters."""
