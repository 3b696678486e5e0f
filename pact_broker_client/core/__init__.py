"""Pact merging and publishing."""
