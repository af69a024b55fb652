"""Exception hierarchy for the tracker."""


class TrackerError(Exception):
    """Base exception for all tracker errors."""


class StorageFailure(TrackerError):
    """A persistence-layer operation failed."""


class MessageNotFound(TrackerError):
    """No ledger row for the requested message id."""


# Sessions
class SessionError(TrackerError):
    """Base exception for session lifecycle operations."""


class SessionNotFound(SessionError):
    """No live session registered under this name."""


class SessionNotReady(SessionError):
    """The session's connection is not in the ready state."""


class InvalidSessionTransition(SessionError):
    """The requested connection state is not reachable from the current one."""


class ClientNotConfigured(SessionError):
    """No messaging-client factory is configured."""


# Media
class MediaError(TrackerError):
    """Base exception for media operations."""


class MediaDownloadFailed(MediaError):
    """The messaging client could not provide the attachment bytes."""


class InvalidMediaReference(MediaError):
    """The filename escapes the media root or the file does not exist."""


class MediaFileMissing(InvalidMediaReference):
    """The reference is well formed but no file exists for it."""


# Lookups (always recovered inside the resolver)
class LookupFailed(TrackerError):
    """Base exception for best-effort metadata lookups."""


class ContactLookupFailed(LookupFailed):
    """Contact display metadata could not be fetched."""


class QuotedMessageLookupFailed(LookupFailed):
    """The quoted message of a reply could not be fetched."""


# Sending
class InvalidRecipient(TrackerError, ValueError):
    """The recipient cannot be normalized to a WhatsApp address."""


class SendFailed(TrackerError):
    """The messaging client failed to send."""
