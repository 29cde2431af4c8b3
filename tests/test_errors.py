"""Unit tests for the error taxonomy."""

from smoker.core.errors import (
    CircularReferenceDetected,
    ClientNotInitializedError,
    ConfigurationError,
    ExternalFetchError,
    ResolutionDepthExceeded,
    ServiceClientError,
    SmokerError,
    UnknownClientType,
    ValidationError,
    ERR_AWS_CALL,
    ERR_CIRCULAR_REFERENCE,
    ERR_CONFIG_PARSE,
    ERR_RESOLUTION_DEPTH,
    ERR_UNKNOWN_CLIENT_TYPE,
    ERR_VALIDATION,
)


class TestErrors:
    """Test cases for harness errors."""

    def test_all_errors_share_base(self):
        """Test that every error derives from SmokerError."""
        errors = [
            ConfigurationError("bad"),
            ValidationError("missing"),
            ResolutionDepthExceeded(10),
            CircularReferenceDetected(["ssm://a", "ssm://a"]),
            ExternalFetchError("failed", reference="ssm://a"),
            UnknownClientType("ftp"),
            ClientNotInitializedError("RestClient"),
            ServiceClientError("boom", code=ERR_AWS_CALL, domain="aws"),
        ]
        for error in errors:
            assert isinstance(error, SmokerError)

    def test_codes(self):
        """Test that each error carries its code."""
        assert ConfigurationError("bad").code == ERR_CONFIG_PARSE
        assert ValidationError("missing").code == ERR_VALIDATION
        assert ResolutionDepthExceeded(10).code == ERR_RESOLUTION_DEPTH
        assert CircularReferenceDetected(["a", "a"]).code == ERR_CIRCULAR_REFERENCE
        assert UnknownClientType("ftp").code == ERR_UNKNOWN_CLIENT_TYPE

    def test_depth_and_cycle_are_distinct(self):
        """Test that depth and cycle failures can be told apart."""
        assert not isinstance(ResolutionDepthExceeded(10), CircularReferenceDetected)
        assert not isinstance(CircularReferenceDetected(["a", "a"]), ResolutionDepthExceeded)

    def test_messages(self):
        """Test the human readable messages."""
        assert str(UnknownClientType("ftp")) == "Unknown client type: ftp"
        assert str(ClientNotInitializedError("S3Client")) == (
            "S3Client is not initialized. Call init() first."
        )
        assert str(CircularReferenceDetected(["a", "b", "a"])) == (
            "Circular reference detected: a -> b -> a"
        )

    def test_to_dict_includes_cause(self):
        """Test the serializable view of an error."""
        try:
            try:
                raise KeyError("missing")
            except KeyError as e:
                raise ExternalFetchError("failed", reference="ssm://x") from e
        except ExternalFetchError as error:
            data = error.to_dict()

        assert data["name"] == "ExternalFetchError"
        assert data["details"] == {"reference": "ssm://x"}
        assert data["retryable"] is True
        assert data["cause"]["name"] == "KeyError"
