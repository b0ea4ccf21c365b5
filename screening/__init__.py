"""
Screening Module

Client-side filtering over already-fetched analytics:
- Signal-category criteria with draft and applied filter states
- Change-percent, days-until and holding-period buckets
- Holdings table filtering, sorting and pagination
"""

__version__ = "0.0.1"
