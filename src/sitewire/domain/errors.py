"""Error definitions shared across SITEWIRE layers."""

# ============================================================================
#                           General errors
# ============================================================================


class SitewireError(Exception):
    """Base class for SITEWIRE errors."""


class ConfigurationError(SitewireError):
    """Raised when configuration data cannot be turned into a `SiteConfig`."""

    def __init__(self, section: str, reason: str) -> None:
        super().__init__(f"Invalid configuration for '{section}': {reason}")
        self.section = section
        self.reason = reason


class SubsystemNotBuiltError(SitewireError, AttributeError):
    """Raised when accessing a site field whose subsystem was not built.

    Subclasses `AttributeError` so that ``hasattr(site, "cookie")`` doubles as
    the runtime presence check for a subsystem.
    """

    def __init__(self, field: str, subsystem: str) -> None:
        super().__init__(
            f"'{field}' is not available: the {subsystem} subsystem was not built "
            "for this configuration."
        )
        self.field = field
        self.subsystem = subsystem


class InitializationCancelledError(SitewireError):
    """Raised to readiness observers when site initialization was cancelled."""

    def __init__(self) -> None:
        super().__init__("Site initialization was cancelled")


# ============================================================================
#                   Collaborator errors
# ============================================================================


class CollaboratorError(SitewireError):
    """Base class for errors raised by subsystem collaborators."""


class DatabaseConnectionError(CollaboratorError):
    """Raised when the database cannot be reached."""

    def __init__(self, url: str) -> None:
        super().__init__(f"Cannot connect to database at {url}")
        self.url = url


class UnknownSettingError(CollaboratorError, KeyError):
    """Raised when a config store key is not declared in the schema."""

    def __init__(self, key: str) -> None:
        super().__init__(f"Unknown setting '{key}'")
        self.key = key

    def __str__(self) -> str:
        # KeyError would otherwise repr() the message
        return str(self.args[0])


class InvalidSettingError(CollaboratorError):
    """Raised when a config store value does not match the schema default's type."""

    def __init__(self, key: str, expected: type, actual: type) -> None:
        super().__init__(
            f"Setting '{key}' expects {expected.__name__}, got {actual.__name__}"
        )
        self.key = key
        self.expected = expected
        self.actual = actual


class UserExistsError(CollaboratorError):
    """Raised when creating a user whose email is already registered."""

    def __init__(self, email: str) -> None:
        super().__init__(f"User '{email}' already exists")
        self.email = email


class InvalidCredentialsError(CollaboratorError):
    """Raised when an email/password pair or session token is rejected."""


class TransferError(CollaboratorError):
    """Raised when an incoming transfer violates the transport limits."""
