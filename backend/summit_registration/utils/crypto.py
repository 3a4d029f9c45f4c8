import hmac
import secrets
from typing import Sequence, TypeVar

T = TypeVar("T")

def secure_random_bytes(count: int) -> bytes:
    """Cryptographically secure random bytes"""
    return secrets.token_bytes(count)

def secure_choice(options: Sequence[T]) -> T:
    """Uniform choice from a non-empty sequence using the OS CSPRNG"""
    return secrets.choice(options)

def constant_time_equals(a: str, b: str) -> bool:
    """Compare two secrets without leaking timing information"""
    return hmac.compare_digest(a.encode(), b.encode())
