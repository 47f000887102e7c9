from typing import Protocol


class PasswordHasher(Protocol):
    """Slow, salted, one-way password hashing."""
    def hash(self, plaintext: str) -> str:
        """Hash plaintext. Raise HashError on malformed input."""
        ...

    def verify(self, plaintext: str, hashed: str) -> bool:
        """Return True on match, False on mismatch. Raise HashError on malformed input."""
        ...

    def needs_rehash(self, hashed: str) -> bool:
        """Return True if hashed was made with different parameters than hash() uses now."""
        ...
