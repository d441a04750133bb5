
class ConnectorError(Exception):
    """ Indicates a failure to connect to, disconnect from or query a device. """


class CommandError(ConnectorError):
    """ An external command could not be run, timed out or exited with a non-zero code. """

    def __init__(self, message, args=(), returncode=None, stderr=None):
        super().__init__(message)
        self.command = tuple(args)
        self.returncode = returncode
        self.stderr = stderr


class VerificationError(ConnectorError):
    """ The connect command succeeded, but the device is not listed as connected. """
