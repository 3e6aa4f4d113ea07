"""Comparative and community-ecology helpers that consume aligned data."""
