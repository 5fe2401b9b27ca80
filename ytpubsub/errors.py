"""Contains custom exceptions for the ytpubsub package."""

import sys
from http import HTTPStatus

if sys.version_info >= (3, 12):  # pragma: no cover
    from typing import override  # novm
else:
    from typing_extensions import override


class HTTPError(Exception):
    """Exception raised when the hub replies with an unexpected status."""

    @override
    def __init__(self, message: str, status_code: int | HTTPStatus) -> None:
        """Initialize the HTTPError object.

        :param message: The error message
        :param status_code: The status code of the error
        """
        super().__init__(message)
        try:
            self.status_code: int = HTTPStatus(status_code)
        except ValueError:
            self.status_code = status_code
        self.message = message

    @override
    def __str__(self) -> str:
        """Return a string representation of the HTTPError object."""
        return f"Status code: {self.status_code}: {self.message}"


class SignatureError(ValueError):
    """Exception raised when a signature uses an unsupported or malformed
    algorithm.
    """

    @override
    def __init__(self, algorithm: str) -> None:
        """Initialize the SignatureError object.

        :param algorithm: The algorithm name advertised by the hub
        """
        super().__init__(f"Unsupported signature algorithm: {algorithm!r}")
        self.algorithm = algorithm
