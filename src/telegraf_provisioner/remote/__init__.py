"""Remote shell and file transfer to the gateway."""
from .session import CommandResult, RemoteSession, RemoteTarget

__all__ = ["CommandResult", "RemoteSession", "RemoteTarget"]
