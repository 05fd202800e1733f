"""Tests for custom exception classes in heimdallr.exceptions module."""

from heimdallr.exceptions import (
    AmbiguousTargetError,
    AWSServiceError,
    ConfigurationError,
    HeimdallrError,
    InvalidRuntimeIdError,
    InvalidTargetError,
    MissingJoinKeyError,
    NoMatchError,
    ProfileNotFoundError,
    SelectionCancelledError,
    ValidationError,
)


class TestHeimdallrError:
    """Test the base HeimdallrError exception class."""

    def test_message_only(self):
        error = HeimdallrError("Test error message")

        assert str(error) == "Test error message"
        assert error.details is None

    def test_message_and_details(self):
        error = HeimdallrError("Test error", "Additional details")

        assert str(error) == "Test error\nDetails: Additional details"
        assert error.message == "Test error"

    def test_every_error_is_a_heimdallr_error(self):
        errors = [
            InvalidTargetError("x"),
            AmbiguousTargetError("c", "s", ["a", "b"]),
            NoMatchError("none"),
            SelectionCancelledError(),
            MissingJoinKeyError("task", "t1"),
            AWSServiceError("EC2", "op", "Code", "msg"),
            ConfigurationError("bad"),
            ValidationError("bad"),
        ]
        assert all(isinstance(e, HeimdallrError) for e in errors)


class TestTargetErrors:
    def test_invalid_target(self):
        error = InvalidTargetError("a#b#c#d")

        assert error.message == "Invalid target format specified: 'a#b#c#d'"
        assert "cluster#service#container" in error.details

    def test_ambiguous_target_sorts_names(self):
        error = AmbiguousTargetError("prod", "api", ["web", "sidecar"])

        assert str(error) == (
            "Ambiguous connection options. Specify container with prod#api#{sidecar, web}."
        )
        assert error.container_names == ["sidecar", "web"]

    def test_selection_cancelled(self):
        assert SelectionCancelledError().message == "Selection cancelled. Exiting."


class TestAWSServiceError:
    def test_known_code_gets_friendly_message(self):
        error = AWSServiceError("ECS", "list_tasks", "ServiceNotFoundException", "raw")

        assert error.message == "The specified ECS service was not found."
        assert error.details == "AWS ECS list_tasks failed with error code: ServiceNotFoundException"

    def test_unknown_code_keeps_original_message(self):
        error = AWSServiceError("EC2", "describe_instances", "Throttling", "Rate exceeded")

        assert error.message == "Rate exceeded"


class TestConfigurationErrors:
    def test_configuration_error(self):
        error = ConfigurationError("missing value for --dns-name")

        assert error.message == "Configuration error: missing value for --dns-name"
        assert "heimdallr config show" in error.details

    def test_profile_not_found(self):
        error = ProfileNotFoundError("dev", ["staging", "prod"])

        assert isinstance(error, ConfigurationError)
        assert error.message == "Configuration error: profile 'dev' not found"
        assert error.details == "Available profiles: prod, staging"

    def test_profile_not_found_without_profiles(self):
        error = ProfileNotFoundError("dev")

        assert error.details == "No profiles are defined in the configuration file"


class TestValidationErrors:
    def test_invalid_runtime_id(self):
        error = InvalidRuntimeIdError("abc", 12)

        assert isinstance(error, ValidationError)
        assert error.runtime_id == "abc"
        assert str(error) == (
            "Validation error: Container runtime id 'abc' is shorter than 12 characters"
        )

    def test_missing_join_key(self):
        error = MissingJoinKeyError("EC2 instance", "i-0abc")

        assert error.message == "Unknown EC2 instance 'i-0abc' in AWS response"
        assert error.key == "i-0abc"
