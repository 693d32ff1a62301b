"""
Visitor fingerprint hashing utilities.

Security notes:
  • SHA-256 over (salt, seed, user agent) joined by NUL. NUL cannot occur
    in header values or cookie ids, so ("ab", "c") and ("a", "bc") never
    produce the same input.
  • Raw IPs and user agents are never stored; only the hex digest is.
  • generate_visitor_id() mints the client-held visitor cookie value.
"""

import hashlib
import uuid

_FINGERPRINT_DELIMITER = "\0"


def hash_visitor_fingerprint(salt: str, seed: str, user_agent: str) -> str:
    """
    Hash a guest fingerprint using SHA-256.

    Returns the hex digest string used as the guest subject.
    """
    fingerprint_input = _FINGERPRINT_DELIMITER.join((salt, seed, user_agent))
    return hashlib.sha256(fingerprint_input.encode("utf-8")).hexdigest()


def generate_visitor_id() -> str:
    """Generate a new random visitor identifier (UUID4 string)."""
    return str(uuid.uuid4())
