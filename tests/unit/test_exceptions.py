"""Unit tests for cliforge.exceptions module."""

from pathlib import Path

from cliforge.exceptions import (
    CliforgeAlreadyExistsError,
    CliforgeError,
    CliforgeInvalidOperationError,
    CliforgeIOError,
    CliforgeNotFoundError,
    CliforgeParseError,
    CliforgeValidationError,
)


class TestCliforgeErrorBase:
    """Tests for the base CliforgeError class."""

    def test_error_with_details(self) -> None:
        """CliforgeError stores message and details."""
        error = CliforgeError("Something went wrong", code="TEST_ERROR", path="/tmp/x")

        assert str(error) == "Something went wrong"
        assert error.details == {"code": "TEST_ERROR", "path": "/tmp/x"}
        assert "TEST_ERROR" in repr(error)
        assert repr(error).startswith("CliforgeError(")

    def test_error_without_details(self) -> None:
        error = CliforgeError("Simple error")

        assert str(error) == "Simple error"
        assert error.details == {}
        assert "details" not in repr(error)

    def test_exception_catch_by_base_type(self) -> None:
        """All exceptions can be caught as CliforgeError."""
        errors: list[CliforgeError] = [
            CliforgeNotFoundError("context", "prod"),
            CliforgeAlreadyExistsError("context", "prod"),
            CliforgeInvalidOperationError("cannot delete the default context"),
            CliforgeValidationError("context name cannot be empty"),
            CliforgeIOError("Failed to save file", Path("/tmp/state.yaml"), "rename"),
            CliforgeParseError("Failed to parse file", Path("/tmp/state.yaml")),
        ]

        for error in errors:
            assert isinstance(error, CliforgeError)


class TestTaxonomy:
    """Tests for the specific error kinds."""

    def test_not_found_message_and_attributes(self) -> None:
        error = CliforgeNotFoundError("history entry", 42)

        assert str(error) == "history entry 42 not found"
        assert error.kind == "history entry"
        assert error.key == 42

    def test_already_exists_message(self) -> None:
        error = CliforgeAlreadyExistsError("context", "staging")

        assert str(error) == "context 'staging' already exists"
        assert error.key == "staging"

    def test_validation_is_invalid_operation(self) -> None:
        assert issubclass(CliforgeValidationError, CliforgeInvalidOperationError)

    def test_io_error_carries_path_and_operation(self) -> None:
        path = Path("/tmp/state.yaml")
        error = CliforgeIOError("Failed to save file", path, "rename")

        assert error.path == path
        assert error.operation == "rename"
        assert str(path) in str(error)

    def test_parse_error_carries_path(self) -> None:
        path = Path("/tmp/history.json")
        error = CliforgeParseError("Failed to parse file", path)

        assert error.path == path
        assert str(error) == f"Failed to parse file: {path}"
