"""
REST API for the consensus oracle.
"""

from feedoracle.api.server import OracleAPI, create_app

__all__ = [
    "create_app",
    "OracleAPI",
]
