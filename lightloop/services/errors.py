"""Exceptions raised across the control loop."""


class LightLoopError(Exception):
    """Base exception for all lightloop errors."""


class UnknownModeError(LightLoopError):
    """A mode id was requested that is not in the registry."""

    def __init__(self, mode_id):
        super().__init__(f"unrecognized mode {mode_id}")
        self.mode_id = mode_id


class DeviceCommandError(LightLoopError):
    """A single remote call against one device failed."""

    def __init__(self, device, action, reason=""):
        name = getattr(device, "name", device)
        message = f"{action} failed for {name}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.device = device
        self.action = action


class CacheRefreshError(LightLoopError):
    """Listing devices failed; the previous cache is still in place."""


class SessionError(LightLoopError):
    """A cached session could not be parsed."""


class LoginError(LightLoopError):
    """Establishing a new session failed."""


class InputParseError(LightLoopError):
    """Interactive input was malformed."""


class ModeRunError(LightLoopError):
    """A mode's tick failed. Wraps the underlying cause."""

    def __init__(self, mode_id, cause):
        super().__init__(f"failed to execute mode {mode_id}: {cause}")
        self.mode_id = mode_id
        self.cause = cause
