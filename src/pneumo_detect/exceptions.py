"""
Error kinds raised by the detection pipeline.
"""


class DetectionError(Exception):
    """Base class for every error raised by the detection pipeline."""
    pass


class DecodeError(DetectionError):
    """Raised when the image bytes are not a valid JPEG or PNG image."""
    pass


class InitError(DetectionError):
    """Raised when a scoring backend cannot be constructed."""
    pass


class NotReadyError(DetectionError):
    """Raised when an operation is invoked outside the Ready state."""
    pass


class InferenceError(DetectionError):
    """Raised when the forward pass fails or produces an invalid output."""
    pass


class NetworkError(DetectionError):
    """Raised when the remote endpoint cannot be reached or rejects the request."""
    pass


class ConfigurationError(DetectionError):
    """Raised when the selected backend is missing required configuration."""
    pass


class IntakeError(DetectionError):
    """Raised when an upload is rejected before the pipeline runs."""
    pass


class UnsupportedMediaError(IntakeError):
    """Raised for uploads that are neither JPEG nor PNG."""
    pass


class UploadTooLargeError(IntakeError):
    """Raised for uploads above the configured byte limit."""
    pass
