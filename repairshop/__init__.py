"""Repair shop ticket and inventory service."""
