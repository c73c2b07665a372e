"""
Password hashing and verification.

Uses bcrypt for password hashing with automatic salting and a configurable
work factor.
"""

import bcrypt


class PasswordHasher:
    """One-way hash + verify pair for stored passwords."""

    def __init__(self, rounds: int = 10):
        self.rounds = rounds

    def hash(self, plaintext: str) -> str:
        """Hash a password with bcrypt (auto-salted)."""
        if not plaintext:
            raise ValueError("Cannot hash an empty password")
        return bcrypt.hashpw(plaintext.encode("utf-8"), bcrypt.gensalt(rounds=self.rounds)).decode("utf-8")

    def verify(self, plaintext: str, hashed: str) -> bool:
        """Constant-time comparison against a bcrypt hash."""
        if not plaintext or not hashed:
            return False
        try:
            return bcrypt.checkpw(plaintext.encode("utf-8"), hashed.encode("utf-8"))
        except (ValueError, TypeError):
            return False
