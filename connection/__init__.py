"""
Transport layer: one persistent Socket.IO connection to the
classification service.
"""

from connection.manager import ConnectionManager, ConnectionState

__all__ = ["ConnectionManager", "ConnectionState"]
