"""
Test Suite for the Portfolio Analytics Engine

Includes:
- Unit tests for calculations and labelers
- Leaderboard and consistency-table tests over payload fixtures
- Screening filter and pagination tests
- CLI tests
"""
