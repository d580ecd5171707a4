class AdmissionError(Exception):
    """
    Raised when an admission request cannot be answered with a mutation.

    Attributes:
        message: Human-readable explanation returned to the API server.
        status_code: HTTP status the webhook responds with.
    """

    status_code = 500

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class MalformedRequestError(AdmissionError):
    """Wrong content type, undecodable AdmissionReview, or unexpected resource."""

    status_code = 400


class ObjectDecodeError(AdmissionError):
    """The Pod or Node embedded in the AdmissionReview does not decode."""


class PatchSerializationError(AdmissionError):
    """A patch value could not be turned into JSON."""
