"""
vaultstats - Live, incremental statistics for markdown vaults.
"""

__version__ = "0.1.0"
