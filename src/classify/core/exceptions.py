"""
Custom exceptions for the content classification pipeline.
"""


class PipelineError(Exception):
    """Base exception for all pipeline errors."""
    pass


class ProviderError(PipelineError):
    """
    Error communicating with a classification provider.

    Raised when:
    - Provider is unreachable
    - Request times out
    - Provider rejects the request (quota, auth, bad request)
    - Provider returns an error response

    Attributes:
        provider: Name of the provider that failed
        status_code: HTTP status code (if any)
        kind: Error kind used for attempt records (network, timeout, quota, http)
    """

    def __init__(
        self,
        message: str,
        provider: str = None,
        status_code: int = None,
        kind: str = "network",
    ):
        super().__init__(message)
        self.provider = provider
        self.status_code = status_code
        self.kind = kind


class ResponseValidationError(PipelineError):
    """
    Error validating a provider response.

    Raised when:
    - Response text is not valid JSON
    - JSON does not match the {label, confidence, reasoning} shape
    - Field values are out of range
    """

    def __init__(self, message: str, validation_errors: list = None, kind: str = "validation"):
        super().__init__(message)
        self.validation_errors = validation_errors or []
        self.kind = kind


class ConfigError(PipelineError):
    """
    Error in pipeline configuration.

    Raised when:
    - Configuration file is missing or invalid
    - An unknown provider name is configured
    - Configuration values are out of valid range
    """
    pass
