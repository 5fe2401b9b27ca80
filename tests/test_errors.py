"""Test errors."""

from http import HTTPStatus

from ytpubsub.errors import HTTPError, SignatureError


def test_http_errors() -> None:
    """Test creating HTTPError instances."""
    error = HTTPError("test", 400)
    assert isinstance(error.status_code, HTTPStatus)

    error = HTTPError("test", HTTPStatus.BAD_REQUEST)
    assert isinstance(error.status_code, HTTPStatus)

    assert error.message in str(error)
    assert "400" in str(error)


def test_http_error_unknown_status() -> None:
    """Test creating an HTTPError with a status code HTTPStatus does not know."""
    error = HTTPError("test", 599)
    assert error.status_code == 599
    assert "599" in str(error)


def test_signature_error() -> None:
    """Test creating SignatureError instances."""
    error = SignatureError("md42")
    assert isinstance(error, ValueError)
    assert error.algorithm == "md42"
    assert "md42" in str(error)
