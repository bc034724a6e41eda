"""Exception types raised by speedprobe for caller (programming) errors."""


class SpeedprobeError(Exception):
    """Base class for all speedprobe errors."""


class NoCandidatesError(SpeedprobeError, ValueError):
    """Raised when server selection is asked to choose from nothing."""
