"""Exception taxonomy and exit code mapping for the TradeNavi reconciler."""

from pydantic import ValidationError


class TradeNaviError(Exception):
    """Base class for all reconciler errors."""
    pass


class InvalidInput(TradeNaviError):
    """Raised when numeric or structural input is malformed."""

    def __init__(self, message: str, field: str = None):
        super().__init__(message)
        self.field = field


class IllegalTransition(TradeNaviError):
    """Raised when a requested status edge does not exist."""

    def __init__(self, message: str, current=None, target=None):
        super().__init__(message)
        self.current = current
        self.target = target


class Forbidden(TradeNaviError):
    """Raised when the actor may not perform the action at the current status."""
    pass


class UnsupportedOrigin(TradeNaviError):
    """Raised when a raw record carries an origin kind the normalizer does not know."""
    pass


class Conflict(TradeNaviError):
    """Raised when optimistic-concurrency retries are exhausted."""

    def __init__(self, message: str, attempts: int = 0):
        super().__init__(message)
        self.attempts = attempts


class TradeNotFound(TradeNaviError):
    """Raised when the store has no record for a trade id."""
    pass


class ConfigError(Exception):
    """Raised when configuration is invalid."""
    pass


# Exit codes for CLI
EXIT_SUCCESS = 0              # Successful completion
EXIT_GENERAL_ERROR = 1        # Uncaught/unexpected exceptions
EXIT_CONFIG_ERROR = 2         # Configuration validation failures
EXIT_INVALID_INPUT = 3        # Malformed amounts, items or raw payloads
EXIT_FORBIDDEN = 4            # Actor not allowed to act at this status
EXIT_ILLEGAL_TRANSITION = 5   # Status edge does not exist
EXIT_CONFLICT = 6             # Concurrent write retries exhausted
EXIT_NOT_FOUND = 7            # Unknown trade or unsupported origin


class ExceptionMapper:
    """Maps exceptions to appropriate exit codes."""

    @staticmethod
    def map_to_exit_code(e: Exception) -> int:
        """
        Map an exception to an exit code.

        Args:
            e: The exception to map

        Returns:
            Exit code (0-7)
        """
        # Configuration errors
        if isinstance(e, ConfigError):
            return EXIT_CONFIG_ERROR

        # Workflow errors
        elif isinstance(e, Forbidden):
            return EXIT_FORBIDDEN

        elif isinstance(e, IllegalTransition):
            return EXIT_ILLEGAL_TRANSITION

        elif isinstance(e, Conflict):
            return EXIT_CONFLICT

        elif isinstance(e, (TradeNotFound, UnsupportedOrigin)):
            return EXIT_NOT_FOUND

        # Input errors
        elif isinstance(e, (InvalidInput, ValidationError)):
            return EXIT_INVALID_INPUT

        # Value errors (usually a bad CLI argument)
        elif isinstance(e, ValueError):
            return EXIT_INVALID_INPUT

        # Key errors (often configuration related)
        elif isinstance(e, KeyError):
            return EXIT_CONFIG_ERROR

        # Default to general error
        return EXIT_GENERAL_ERROR
