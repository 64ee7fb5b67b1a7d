class CelebrationError(Exception):
    """Base class for recoverable celebration failures."""


class SourceUnavailable(CelebrationError):
    """Camera, permission or landmark model missing; use the manual fallback."""


class CaptureFailure(CelebrationError):
    pass


class SaveFailure(CelebrationError):
    pass
