"""Exception hierarchy shared by the detector's stages.

Each stage handles a different slice of this tree:

  - MalformedEvent    — dispatch loop drops the record and moves on
  - StoreUnavailable  — the affected rule abstains for the current event
  - TransportError    — publisher drops the alert; a worker exits its loop
  - TransportClosed   — the normal end of an event source, not a failure
"""


class DetectorError(Exception):
    """Base class for every error raised by the detector."""


class MalformedEvent(DetectorError):
    """An inbound record could not be decoded into a SecurityEvent."""


class StoreUnavailable(DetectorError):
    """The counter store could not be reached."""


class TransportError(DetectorError):
    """Reading from or writing to the message transport failed."""


class TransportClosed(TransportError):
    """The transport was closed underneath a reader."""
