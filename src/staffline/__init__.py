"""Staffline -- staff account provisioning for the operations console."""
