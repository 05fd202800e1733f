"""Errors raised by heimdallr.

Every error carries a one-line ``message`` and optional ``details``; the CLI
prints both and exits with status 1.
"""


class HeimdallrError(Exception):
    """Base exception for all heimdallr errors."""

    def __init__(self, message: str, details: str | None = None):
        self.message = message
        self.details = details
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message}\nDetails: {self.details}"
        return self.message


class InvalidTargetError(HeimdallrError):
    """Raised when a connection target does not match any supported format."""

    def __init__(self, target: str, details: str | None = None):
        self.target = target
        message = f"Invalid target format specified: '{target}'"
        if not details:
            details = "Supported formats are host, user@host, cluster#service, cluster#service#container"
        super().__init__(message, details)


class AmbiguousTargetError(HeimdallrError):
    """Raised when a cluster#service target matches a task with several containers."""

    def __init__(self, cluster: str, service: str, container_names: list[str]):
        self.cluster = cluster
        self.service = service
        self.container_names = sorted(container_names)
        message = (
            "Ambiguous connection options. Specify container with "
            f"{cluster}#{service}#{{{', '.join(self.container_names)}}}."
        )
        super().__init__(message)


class NoMatchError(HeimdallrError):
    """Raised when a lookup finishes without any usable result."""


class SelectionCancelledError(HeimdallrError):
    """Raised when the operator aborts an interactive selection."""

    def __init__(self, details: str | None = None):
        super().__init__("Selection cancelled. Exiting.", details)


class MissingJoinKeyError(HeimdallrError):
    """Raised when an API response references an identifier that was never seen."""

    def __init__(self, key_type: str, key: str):
        self.key_type = key_type
        self.key = key
        message = f"Unknown {key_type} '{key}' in AWS response"
        details = "The resource may have changed between API calls. Try again."
        super().__init__(message, details)


class AWSServiceError(HeimdallrError):
    """Raised when an EC2 or ECS call fails."""

    def __init__(
        self,
        service: str,
        operation: str,
        aws_error_code: str,
        message: str,
        details: str | None = None,
    ):
        self.service = service
        self.operation = operation
        self.aws_error_code = aws_error_code

        user_message = self._get_user_friendly_message(aws_error_code, message)

        if not details:
            details = f"AWS {service} {operation} failed with error code: {aws_error_code}"

        super().__init__(user_message, details)

    def _get_user_friendly_message(self, error_code: str, original_message: str) -> str:
        """Map well-known AWS error codes to a plain explanation."""
        error_mappings = {
            "UnauthorizedOperation": (
                "Permission denied. Your AWS credentials don't have the required "
                "permissions for this operation."
            ),
            "AccessDeniedException": (
                "Permission denied. Your AWS credentials don't have the required "
                "permissions for this operation."
            ),
            "NoCredentials": "AWS credentials not found or invalid.",
            "ClusterNotFoundException": "The specified ECS cluster was not found.",
            "ServiceNotFoundException": "The specified ECS service was not found.",
            "InvalidGroup.NotFound": "The specified security group was not found.",
            "InvalidPermission.Duplicate": "Your IP address is already allowed on this security group.",
            "InvalidPermission.NotFound": "No matching ingress rule exists for your IP address.",
            "RequestLimitExceeded": "AWS API rate limit exceeded. Please wait a moment and try again.",
            "EndpointConnectionError": "Could not reach the AWS endpoint. Check your network connection.",
        }

        return error_mappings.get(error_code, original_message)


class ConfigurationError(HeimdallrError):
    """Raised when the config file or a required option is unusable."""

    def __init__(self, config_issue: str, details: str | None = None):
        message = f"Configuration error: {config_issue}"
        if not details:
            details = "Run 'heimdallr config show' to view the current configuration"
        super().__init__(message, details)


class ProfileNotFoundError(ConfigurationError):
    """Raised when the requested profile is missing from the config file."""

    def __init__(self, profile: str, available: list[str] | None = None):
        self.profile = profile
        if available:
            details = f"Available profiles: {', '.join(sorted(available))}"
        else:
            details = "No profiles are defined in the configuration file"
        super().__init__(f"profile '{profile}' not found", details)


class ValidationError(HeimdallrError):
    """Raised when user input or an AWS value has the wrong shape."""

    def __init__(self, validation_message: str, details: str | None = None):
        super().__init__(f"Validation error: {validation_message}", details)


class InvalidRuntimeIdError(ValidationError):
    """Raised when a container runtime id is too short to address with docker exec."""

    def __init__(self, runtime_id: str, required_length: int):
        self.runtime_id = runtime_id
        super().__init__(
            f"Container runtime id '{runtime_id}' is shorter than {required_length} characters"
        )
