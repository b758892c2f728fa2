"""Batch jobs for the scoring engine."""
