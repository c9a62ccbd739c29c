"""
Error taxonomy for the conversation core.
ValidationError and NotFoundError are recovered where they are raised and turned into replies;
GatewayError is logged by the sender; SignatureError is raised at the webhook boundary only.
"""


class GoaltError(Exception):
    """Base class for every error the core raises on purpose."""


class ValidationError(GoaltError):
    """User input rejected with no state change. The message is shown to the user verbatim."""

    def __init__(self, user_message: str):
        super().__init__(user_message)
        self.user_message = user_message


class NotFoundError(GoaltError):
    """The record the event refers to no longer exists (for example a double-confirmed delete)."""

    def __init__(self, kind: str, key: object):
        super().__init__(f"{kind} {key!r} not found")
        self.kind = kind
        self.key = key


class StaleWriteError(GoaltError):
    """A compare-and-swap update lost the race against another writer."""


class GatewayError(GoaltError):
    """The outbound Send API call failed."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class SignatureError(GoaltError):
    """Inbound webhook body does not match its X-Hub-Signature header."""
