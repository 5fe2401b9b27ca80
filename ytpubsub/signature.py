"""Contains the HMAC helpers used to sign subscriptions and verify notifications.

The master secret is never sent to the hub. Each topic gets its own secret,
derived as the hex HMAC-SHA1 of the topic URL keyed by the master secret, and the
hub signs the notifications of that topic with the derived value.
"""

__all__ = [
    "SignatureVerifier",
    "derive_secret",
    "parse_signature_header",
    "verify",
]

import hashlib
import hmac

from ytpubsub.errors import SignatureError


def derive_secret(master_secret: str, topic: str) -> str:
    """Derive the per-topic secret sent to the hub as ``hub.secret``.

    :param master_secret: The master secret.
    :param topic: The URL of the feed.
    :return: The lower-case hex HMAC-SHA1 of the topic.
    """
    return hmac.new(master_secret.encode(), topic.encode(), hashlib.sha1).hexdigest()


def parse_signature_header(value: str) -> tuple[str, str]:
    """Split an ``X-Hub-Signature`` header of the form ``algo=hexdigest``.

    :param value: The value of the header.
    :return: The lower-case algorithm name and the lower-case hex digest.
    """
    parts = value.split("=")
    return parts[0].strip().lower(), parts[-1].strip().lower()


class SignatureVerifier:
    """Computes the HMAC of a request body fed chunk by chunk, in arrival order."""

    def __init__(self, algorithm: str, derived_secret: str) -> None:
        """Create a new SignatureVerifier instance.

        :param algorithm: The name of the hash algorithm advertised by the hub,
            such as sha1 or sha256.
        :param derived_secret: The per-topic secret.
        :raises SignatureError: If the algorithm is not supported.
        """
        if not algorithm:
            raise SignatureError(algorithm)

        try:
            self._hmac = hmac.new(derived_secret.encode(), digestmod=algorithm)
        except (ValueError, TypeError) as ex:
            raise SignatureError(algorithm) from ex

        self.algorithm = algorithm

    def update(self, chunk: bytes) -> None:
        """Feed the next chunk of the body.

        :param chunk: The chunk.
        """
        self._hmac.update(chunk)

    def hexdigest(self) -> str:
        """Get the lower-case hex digest of the chunks fed so far.

        :return: The digest.
        """
        return self._hmac.hexdigest().lower()

    def matches(self, signature: str) -> bool:
        """Check the digest against the signature sent by the hub.

        :param signature: The hex digest sent by the hub, in any case.
        :return: True if they are equal, False otherwise.
        """
        if not signature.isascii():
            return False

        return hmac.compare_digest(self.hexdigest(), signature.lower())


def verify(algorithm: str, derived_secret: str, body: bytes, signature: str) -> bool:
    """Verify the signature of a complete body.

    :param algorithm: The name of the hash algorithm advertised by the hub.
    :param derived_secret: The per-topic secret.
    :param body: The body.
    :param signature: The hex digest sent by the hub.
    :return: True if the signature is valid, False otherwise, including when the
        algorithm is not supported.
    """
    try:
        verifier = SignatureVerifier(algorithm, derived_secret)
    except SignatureError:
        return False

    verifier.update(body)
    return verifier.matches(signature)
