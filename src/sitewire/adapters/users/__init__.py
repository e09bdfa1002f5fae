"""Users layer adapters: plain accounts and the networked users server."""

from .passwords import hash_password, verify_password
from .server import NetworkedUsers
from .users import Users

__all__ = ["Users", "NetworkedUsers", "hash_password", "verify_password"]
