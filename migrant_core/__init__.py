"""
Migrant Health client core: network-adaptive data access and sync.
"""

__version__ = "0.1.0"
