"""
zap - SSH inventory manager.

Groups SSH targets into categories, resolves aliases to connection
parameters, merges imported inventories, and maintains a managed block
in /etc/hosts.
"""

__version__ = "1.0.0"
__author__ = "zap maintainers"
