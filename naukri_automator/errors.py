class AutomatorError(Exception):
    """Base class for failures the engine classifies for its caller."""


class AuthenticationError(AutomatorError):
    """The session cookie was rejected or has expired (login page reached)."""


class LaunchError(AutomatorError):
    """No controllable browser could be obtained."""


class SectionNotFoundError(AutomatorError):
    pass


class RenderTimeoutError(AutomatorError):
    pass


class SubmitControlMissingError(AutomatorError):
    """The batch was selected but the apply button never became visible.

    The mission loop treats this as a graceful end of the run.
    """


EXIT_OK = 0
EXIT_ERROR = 1
EXIT_NOT_LOGGED_IN = 2
EXIT_NAVIGATION = 3
EXIT_LAUNCH = 4
EXIT_TIMEOUT = 6
EXIT_INTERRUPTED = 130


def exit_code_for(exc: BaseException) -> int:
    if isinstance(exc, AuthenticationError):
        return EXIT_NOT_LOGGED_IN
    if isinstance(exc, (SectionNotFoundError, RenderTimeoutError)):
        return EXIT_NAVIGATION
    if isinstance(exc, LaunchError):
        return EXIT_LAUNCH
    if isinstance(exc, KeyboardInterrupt):
        return EXIT_INTERRUPTED
    return EXIT_ERROR
