"""Gravi Agent Exception Hierarchy.

All custom exceptions inherit from GraviError.
Send failures are NOT exceptions at the automation boundary; they are
returned as SendResult values. TransportError is raised only inside the
transport layer and converted before it reaches the scheduler.

Exception Hierarchy:
    GraviError (base)
    ├── ConfigurationError
    ├── ValidationError
    ├── TransportError
    │   └── CDPError
    └── SchedulerError
"""


class GraviError(Exception):
    """Base exception for all Gravi Agent errors.

    All custom exceptions inherit from this class,
    allowing for broad exception handling when needed.
    """

    pass


class ConfigurationError(GraviError):
    """Configuration is invalid or missing.

    Raised when:
        - A numeric environment variable cannot be parsed
        - The schedule mode is unknown
        - The prompt list is not a JSON array of strings
        - The prompts file cannot be read
    """

    pass


class ValidationError(GraviError):
    """Data validation failed.

    Raised when:
        - Silence timeout is not positive
        - Interval period is not positive
    """

    pass


class TransportError(GraviError):
    """Automation transport failed.

    Base class for transport-specific errors.
    """

    pass


class CDPError(TransportError):
    """Chrome DevTools Protocol call failed.

    Raised when:
        - No page target exposes a debugger websocket
        - The websocket handshake or round trip fails
        - Runtime.evaluate reports an exception
    """

    pass


class SchedulerError(GraviError):
    """Scheduler API was used incorrectly.

    Raised when:
        - A prompt list contains non-string items
    """

    pass
