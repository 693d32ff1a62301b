"""
Operational errors shared across the service.

None of these are user-caused. Usage-limit throttling has its own error
type in chat_usage.services.session_gate, the only place it originates.
"""


class ConfigurationError(RuntimeError):
    """A required setting is missing or unusable.

    The message names the missing variable and is for server logs only.
    """


class UsageStoreError(RuntimeError):
    """The durable usage store failed at the transaction layer."""


class UpstreamSessionError(RuntimeError):
    """The chat-session provider rejected or garbled a request.

    Always carries a generic message; provider details are logged, not
    forwarded to clients.
    """
