"""Request types of the key-value service and their validation rules."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Union

from xlinekv.command import KeyRange
from xlinekv.state import StatusCode, StatusError

DEFAULT_MAX_TXN_OPS = 128


class SortOrder(IntEnum):
    """Order in which range results are sorted."""

    NONE = 0
    ASCEND = 1
    DESCEND = 2


class SortTarget(IntEnum):
    """Field that range results are sorted by."""

    KEY = 0
    VERSION = 1
    CREATE = 2
    MOD = 3
    VALUE = 4


@dataclass
class RangeRequest:
    """Read the keys in ``[key, range_end)``."""

    key: bytes
    range_end: bytes = b""
    limit: int = 0
    revision: int = 0
    sort_order: int = SortOrder.NONE
    sort_target: int = SortTarget.KEY
    serializable: bool = False
    keys_only: bool = False
    count_only: bool = False


@dataclass
class PutRequest:
    """Write one key."""

    key: bytes
    value: bytes = b""
    lease: int = 0
    prev_kv: bool = False
    ignore_value: bool = False
    ignore_lease: bool = False


@dataclass
class DeleteRangeRequest:
    """Delete the keys in ``[key, range_end)``."""

    key: bytes
    range_end: bytes = b""
    prev_kv: bool = False


@dataclass
class Compare:
    """A condition of a transaction on the keys in ``[key, range_end)``."""

    key: bytes
    range_end: bytes = b""


Request = Union[RangeRequest, PutRequest, DeleteRangeRequest, "TxnRequest"]


@dataclass
class RequestOp:
    """One operation of a transaction branch; ``request`` may be missing."""

    request: Request | None = None


@dataclass
class TxnRequest:
    """A transaction: compares, then the success or the failure branch."""

    compare: list[Compare] = field(default_factory=list)
    success: list[RequestOp] = field(default_factory=list)
    failure: list[RequestOp] = field(default_factory=list)


def _invalid(message: str) -> StatusError:
    return StatusError(StatusCode.INVALID_ARGUMENT, message)


def _is_valid(enum_type: type[IntEnum], value: int) -> bool:
    try:
        enum_type(value)
    except ValueError:
        return False
    return True


def key_ranges_for(request: Request) -> list[KeyRange]:
    """Key ranges a key-value request touches, for conflict detection."""
    if isinstance(request, (RangeRequest, DeleteRangeRequest)):
        return [KeyRange(request.key, request.range_end)]
    if isinstance(request, PutRequest):
        return [KeyRange(request.key, b"")]
    if isinstance(request, TxnRequest):
        return [KeyRange(cmp.key, cmp.range_end) for cmp in request.compare]
    raise TypeError(f"not a key-value request: {request!r}")


def check_range_request(req: RangeRequest) -> None:
    """Validate a range request."""
    if not req.key:
        raise _invalid("key is not provided")
    if not _is_valid(SortOrder, req.sort_order) or not _is_valid(
        SortTarget, req.sort_target
    ):
        raise _invalid("invalid sort option")


def check_put_request(req: PutRequest) -> None:
    """Validate a put request."""
    if not req.key:
        raise _invalid("key is not provided")
    if req.ignore_value and req.value:
        raise _invalid("value is provided")
    if req.ignore_lease and req.lease != 0:
        raise _invalid("lease is provided")


def check_delete_range_request(req: DeleteRangeRequest) -> None:
    """Validate a delete-range request."""
    if not req.key:
        raise _invalid("key is not provided")


_CHECKS = {
    RangeRequest: check_range_request,
    PutRequest: check_put_request,
    DeleteRangeRequest: check_delete_range_request,
}


def check_txn_request(req: TxnRequest) -> None:
    """Validate a transaction, its nested requests and key overlaps."""
    if max(len(req.compare), len(req.success), len(req.failure)) > DEFAULT_MAX_TXN_OPS:
        raise _invalid("too many operations in txn request")
    if any(not cmp.key for cmp in req.compare):
        raise _invalid("key is not provided")
    for op in [*req.success, *req.failure]:
        request = op.request
        if request is None:
            raise _invalid("key not found")
        if isinstance(request, TxnRequest):
            check_txn_request(request)
        else:
            _CHECKS[type(request)](request)
    check_intervals(req.success)
    check_intervals(req.failure)


def _duplicate() -> StatusError:
    return _invalid("duplicate key given in txn request")


def check_intervals(ops: list[RequestOp]) -> tuple[set[bytes], list[KeyRange]]:
    """Reject puts that repeat a key or fall in a deleted range.

    Returns the keys put and the ranges deleted at this level and below.
    """
    dels = [
        KeyRange(op.request.key, op.request.range_end)
        for op in ops
        if isinstance(op.request, DeleteRangeRequest)
    ]
    puts: set[bytes] = set()

    for op in ops:
        if not isinstance(op.request, TxnRequest):
            continue
        success_puts, success_dels = check_intervals(op.request.success)
        failure_puts, failure_dels = check_intervals(op.request.failure)

        for key in success_puts:
            if key in puts:
                raise _duplicate()
            puts.add(key)
            if any(d.contains_key(key) for d in dels):
                raise _duplicate()

        for key in failure_puts:
            # Only the two branches of one txn may put the same key.
            if key in puts and key not in success_puts:
                raise _duplicate()
            puts.add(key)
            if any(d.contains_key(key) for d in dels):
                raise _duplicate()

        dels.extend(success_dels)
        dels.extend(failure_dels)

    for op in ops:
        if not isinstance(op.request, PutRequest):
            continue
        key = op.request.key
        if key in puts:
            raise _duplicate()
        puts.add(key)
        if any(d.contains_key(key) for d in dels):
            raise _duplicate()

    return puts, dels