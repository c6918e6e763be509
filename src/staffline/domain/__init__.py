"""Staffline domain packages."""
