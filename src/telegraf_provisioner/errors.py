"""Exception hierarchy shared by the provisioner components."""


class ProvisionerError(Exception):
    """Base class for all provisioner errors."""
    pass


class ParseError(ProvisionerError):
    """Address-space XML document is unreadable or not well-formed."""
    pass


class ValidationError(ProvisionerError):
    """A user supplied value (IP, host:port, settings file) is malformed."""
    pass


class RemoteError(ProvisionerError):
    """Base class for failures talking to the gateway."""
    pass


class ConnectError(RemoteError):
    """TCP connect or SSH handshake failed."""
    pass


class AuthError(RemoteError):
    """The gateway rejected the credentials."""
    pass


class TransferError(RemoteError):
    """File upload or download failed."""
    pass


class ExecError(RemoteError):
    """A remote command could not be dispatched."""
    pass
