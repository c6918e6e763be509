"""Staffline Foundation -- domain primitives and application utilities."""
