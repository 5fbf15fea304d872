"""Executors that sync event fans to the organization's marketing contacts."""
