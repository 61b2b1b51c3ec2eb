from __future__ import annotations


class SessionError(Exception):
    """Base class for failures the session controller knows how to report."""


class ProviderCancelled(SessionError):
    """The user dismissed the interactive sign-in. Not reported as an error."""


class ProviderError(SessionError):
    """The identity provider could not produce or verify a credential."""


class ExchangeFailed(SessionError):
    """The provider identity could not be exchanged for a store principal."""


class StoreUnavailable(SessionError):
    """A document store read or write could not complete."""


class NotFound(SessionError):
    """The profile record vanished before it could be updated."""


class DocumentExists(Exception):
    """Raised by DocumentStore.create when the key is already taken."""
