"""
chain_monitor - EVM chain health and smart contract activity monitoring.
"""

__version__ = "0.1.0"
