"""Custom exception types for teampulse."""


class TeamPulseError(Exception):
    """Base exception for all recoverable teampulse errors."""


class ConfigurationError(TeamPulseError):
    """Raised when runtime or team configuration values are missing or invalid."""


class AuthenticationError(TeamPulseError):
    """Raised when GitHub or Jira credentials are unavailable or invalid."""


class ApiError(TeamPulseError):
    """Raised when a GitHub or Jira API request fails or returns an unexpected response."""


class StoreError(TeamPulseError):
    """Raised when the snapshot history cannot be read or written."""
