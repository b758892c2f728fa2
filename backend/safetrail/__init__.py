"""SafeTrail safety and trust scoring backend."""

__version__ = "0.1.0"
