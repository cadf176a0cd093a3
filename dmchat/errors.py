class ChatError(Exception):
    """Base class for errors raised by the messaging core."""


class AuthenticationFailure(ChatError):
    """The claimed identity could not be verified."""


class MalformedFrame(ChatError):
    """A realtime frame could not be decoded or misses a field its kind requires."""


class ReceiverNotFound(ChatError):
    pass


class MessageValidationError(ChatError, ValueError):
    pass


class ConversationNotFound(ChatError):
    pass


class MessageNotFound(ChatError):
    pass


class LedgerWriteFailure(ChatError):
    """The store rejected or failed a durable write."""
