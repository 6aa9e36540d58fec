"""Key ranges and commands with their conflict rules."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

UNBOUNDED = b"\x00"
ONE_KEY = b""


class RangeType(Enum):
    """Shape of a key range."""

    ONE_KEY = "one_key"
    ALL_KEYS = "all_keys"
    RANGE = "range"


def get_range_type(key: bytes, range_end: bytes) -> RangeType:
    """Classify a key and range end."""
    if range_end == ONE_KEY:
        return RangeType.ONE_KEY
    if key == UNBOUNDED and range_end == UNBOUNDED:
        return RangeType.ALL_KEYS
    return RangeType.RANGE


def get_prefix(key: bytes) -> bytes:
    """End key of the range holding every key that starts with ``key``."""
    trimmed = key.rstrip(b"\xff")
    if not trimmed:
        return UNBOUNDED
    return trimmed[:-1] + bytes([trimmed[-1] + 1])


@dataclass(frozen=True)
class KeyRange:
    """A key range: ``end`` empty means one key, ``b"\\x00"`` means unbounded."""

    start: bytes
    end: bytes = b""

    def __post_init__(self) -> None:
        object.__setattr__(self, "start", bytes(self.start))
        object.__setattr__(self, "end", bytes(self.end))

    def _start_bound(self) -> bytes | None:
        return None if self.start == UNBOUNDED else self.start

    def _end_bound(self) -> tuple[bool, bytes] | None:
        """None when unbounded, else (inclusive, key)."""
        if self.end == UNBOUNDED:
            return None
        if self.end == ONE_KEY:
            return True, self.start
        return False, self.end

    @staticmethod
    def _before_end(key: bytes, end: tuple[bool, bytes] | None) -> bool:
        if end is None:
            return True
        inclusive, bound = end
        return key <= bound if inclusive else key < bound

    def is_conflicted(self, other: KeyRange) -> bool:
        """Whether the two ranges overlap."""
        s1, s2 = self._start_bound(), other._start_bound()
        if s1 is None and s2 is None:
            return True
        if s1 is not None and s1 == s2:
            return True
        if s2 is not None and (s1 is None or s1 < s2):
            return self._before_end(s2, self._end_bound())
        assert s1 is not None
        return self._before_end(s1, other._end_bound())

    def is_conflict(self, other: KeyRange) -> bool:
        """Same as :meth:`is_conflicted`."""
        return self.is_conflicted(other)

    def contains_key(self, key: bytes) -> bool:
        """Whether ``key`` lies in this range."""
        start = self._start_bound()
        if start is not None and key < start:
            return False
        return self._before_end(key, self._end_bound())

    def contains_range(self, other: KeyRange) -> bool:
        """Whether ``other`` lies wholly in this range."""
        if not other.end:
            return self.contains_key(other.start)
        s1, s2 = self._start_bound(), other._start_bound()
        if s1 is None:
            starts_ok = True
        elif s2 is None:
            starts_ok = False
        else:
            starts_ok = s1 <= s2
        e1, e2 = self._end_bound(), other._end_bound()
        if e1 is None:
            ends_ok = True
        elif e2 is None:
            ends_ok = False
        else:
            inclusive1, bound1 = e1
            inclusive2, bound2 = e2
            if inclusive2 and not inclusive1:
                ends_ok = bound1 > bound2
            else:
                ends_ok = bound1 >= bound2
        return starts_ok and ends_ok


class RequestKind(Enum):
    """The kind of request a command carries."""

    KV = "kv"
    AUTH_READ = "auth_read"
    AUTH_WRITE = "auth_write"
    LEASE_GRANT = "lease_grant"
    LEASE_REVOKE = "lease_revoke"

    @property
    def is_kv(self) -> bool:
        return self is RequestKind.KV

    @property
    def is_auth(self) -> bool:
        return self in (RequestKind.AUTH_READ, RequestKind.AUTH_WRITE)

    @property
    def is_auth_read(self) -> bool:
        return self is RequestKind.AUTH_READ

    @property
    def is_lease(self) -> bool:
        return self in (RequestKind.LEASE_GRANT, RequestKind.LEASE_REVOKE)


@dataclass(frozen=True)
class Command:
    """A request proposed to the consensus protocol, with the keys it touches."""

    keys: tuple[KeyRange, ...]
    kind: RequestKind
    id: str
    lease_id: int = 0
    request: Any = field(default=None, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "keys", tuple(self.keys))

    def is_conflict(self, other: Command) -> bool:
        """Whether the two commands must not run concurrently."""
        if self.id == other.id:
            return True
        a, b = self.kind, other.kind
        if (
            (a.is_auth_read and b.is_auth_read)
            or (a.is_kv and b.is_auth_read)
            or (a.is_auth_read and b.is_kv)
        ):
            return False
        # An auth write invalidates every earlier token.
        if a.is_auth or b.is_auth:
            return True
        if a.is_lease and b.is_lease and self.lease_id == other.lease_id:
            return True
        return any(k1.is_conflicted(k2) for k1 in self.keys for k2 in other.keys)