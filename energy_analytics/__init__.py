"""
Energy analytics service for the P2P energy-trading backend.

Simulates plausible per-site generation/consumption when no metered
telemetry exists and blends real readings with order history when it does.

CHANGELOG:
- 2026-10-12: Initial creation (STORY-101)
"""

__version__ = "0.1.0"
