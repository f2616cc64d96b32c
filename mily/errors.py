"""Exception types shared across Mily components."""


class MilyError(Exception):
    """Base class for all Mily errors."""


class ProviderError(MilyError):
    """A language-model backend failed to produce a reply."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class StorageError(MilyError):
    """The conversation log could not be read or written."""


class PolicyViolation(MilyError):
    """An external action was denied by the capability policy."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class ConfigError(MilyError):
    """A setting required by the selected component is missing."""


class FetchError(MilyError):
    """A web page could not be retrieved."""
