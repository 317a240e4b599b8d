"""Random token generation."""

import base64
import secrets

from .error_handling import ArgumentError


DEFAULT_TOKEN_LENGTH = 32


class TokenGenerator:
    """Generates base64 encoded tokens from a cryptographically secure source."""

    def generate(self, length: int = DEFAULT_TOKEN_LENGTH) -> str:
        """
        Generate a token of ``length`` random bytes.

        Args:
            length: Number of random bytes (not the length of the returned text)

        Returns:
            Base64 encoded token
        """
        if length is None or length <= 0:
            raise ArgumentError("Token length must be a positive number of bytes", {"length": length})

        return base64.b64encode(secrets.token_bytes(length)).decode("ascii")


def generate_token(length: int = DEFAULT_TOKEN_LENGTH) -> str:
    """Generate a base64 encoded random token."""
    return TokenGenerator().generate(length)
