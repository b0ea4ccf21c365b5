"""
Data Ingestion Module

Loads analytics API payloads saved as JSON:
- Stock performance (monthly returns and volumes)
- Holdings and transactions
- Stock-research signal categories
"""

__version__ = "0.0.1"
