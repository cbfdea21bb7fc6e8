"""Persistence for contact mappings and gateway request logs."""
