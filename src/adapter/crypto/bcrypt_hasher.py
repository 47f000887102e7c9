"""bcrypt implementation of PasswordHasher."""

import bcrypt

from domain.model.errors import HashError

# bcrypt configuration
# 12 rounds (2^12 = 4096 iterations) unless PASSWORD_HASH_COST says otherwise
DEFAULT_ROUNDS = 12
MIN_ROUNDS = 4
MAX_ROUNDS = 31

# bcrypt only looks at the first 72 bytes of a password
MAX_PASSWORD_BYTES = 72


class BcryptPasswordHasher:
    def __init__(self, rounds: int = DEFAULT_ROUNDS):
        if not MIN_ROUNDS <= rounds <= MAX_ROUNDS:
            raise ValueError(f"bcrypt rounds must be between {MIN_ROUNDS} and {MAX_ROUNDS}, got {rounds}")
        self.rounds = rounds

    def _encode(self, plaintext: str) -> bytes:
        if not isinstance(plaintext, str) or not plaintext:
            raise HashError("Password must be a non-empty string")
        encoded = plaintext.encode('utf-8')
        if len(encoded) > MAX_PASSWORD_BYTES:
            raise HashError(f"Password exceeds {MAX_PASSWORD_BYTES} bytes")
        return encoded

    def hash(self, plaintext: str) -> str:
        """Hash password using bcrypt.

        Args:
            plaintext: Plain text password

        Returns:
            Bcrypt hashed password as string

        Raises:
            HashError: empty or over-long password
        """
        salt = bcrypt.gensalt(rounds=self.rounds)
        hashed = bcrypt.hashpw(self._encode(plaintext), salt)
        return hashed.decode('utf-8')

    def verify(self, plaintext: str, hashed: str) -> bool:
        """Verify password against hash.

        Args:
            plaintext: Plain text password
            hashed: Bcrypt hashed password (string format)

        Returns:
            True if password matches, False otherwise

        Raises:
            HashError: the stored hash is not a bcrypt hash, or the
                candidate password cannot be encoded
        """
        if not hashed:
            raise HashError("Stored password hash is empty")
        candidate = self._encode(plaintext)
        try:
            return bcrypt.checkpw(candidate, hashed.encode('utf-8'))
        except ValueError as e:
            raise HashError(f"Password verification failed: {e}") from e

    def needs_rehash(self, hashed: str) -> bool:
        """True when a stored hash was made at a different cost than this hasher's."""
        return rounds_of(hashed) != self.rounds


def rounds_of(hashed: str) -> int:
    """Return the cost factor recorded in a bcrypt hash ("$2b$12$...")."""
    try:
        return int(hashed.split('$')[2])
    except (AttributeError, IndexError, ValueError) as e:
        raise HashError("Not a bcrypt hash") from e
