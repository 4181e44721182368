class PipelineError(Exception):
    """Base class for errors raised by the lead pipeline."""

    status_code = 500


class InputError(PipelineError):
    """The caller sent a payload we cannot accept."""

    status_code = 400


class AuthenticationError(InputError):
    status_code = 401


class LeadNotFound(PipelineError):
    status_code = 404

    def __init__(self, lead_id: str):
        super().__init__(f"Lead not found: {lead_id}")
        self.lead_id = lead_id


class InvalidStatusTransition(PipelineError):
    status_code = 409

    def __init__(self, current: str, requested: str):
        super().__init__(f"Cannot move lead status from {current!r} to {requested!r}")
        self.current = current
        self.requested = requested


class StoreError(PipelineError):
    """The backing data store failed or returned an error response."""

    status_code = 503


class DeliveryError(PipelineError):
    """A notification channel could not deliver a message."""

    status_code = 502

    def __init__(self, channel: str, message: str):
        super().__init__(f"{channel}: {message}")
        self.channel = channel


class ChannelUnavailable(DeliveryError):
    """Credentials or configuration for the channel are missing, or it is unreachable."""


class ChannelRejected(DeliveryError):
    """The downstream provider answered with a non-success status."""

    def __init__(self, channel: str, message: str, status: int = 0):
        super().__init__(channel, message)
        self.status = status
