"""Discover resource identifier fields in CloudTrail event history."""

__version__ = "0.1.0"
