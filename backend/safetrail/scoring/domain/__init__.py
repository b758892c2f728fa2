"""Scoring domain: calculators, strategies, caching and report moderation."""
