class Gp3Error(Exception):
    """Base class for errors raised inside gp3_attention."""


class ProtocolError(Gp3Error):
    """A line received from (or built for) the server is not valid protocol."""


class UserCancelled(Gp3Error):
    """The user declined a prompt."""


class PreconditionFailed(Gp3Error):
    """A step needed an active editable context and there was none."""
