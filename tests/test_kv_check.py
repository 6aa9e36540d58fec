import pytest

from xlinekv.command import KeyRange
from xlinekv.kv_check import (
    Compare,
    DeleteRangeRequest,
    PutRequest,
    RangeRequest,
    RequestOp,
    SortOrder,
    SortTarget,
    TxnRequest,
    check_delete_range_request,
    check_intervals,
    check_put_request,
    check_range_request,
    check_txn_request,
    key_ranges_for,
)
from xlinekv.state import StatusCode, StatusError


def put(key, value=b"bar"):
    return RequestOp(PutRequest(key=key, value=value))


def delete(key, range_end=b""):
    return RequestOp(DeleteRangeRequest(key=key, range_end=range_end))


def expect_invalid(func, arg, message):
    with pytest.raises(StatusError) as info:
        func(arg)
    assert info.value.code is StatusCode.INVALID_ARGUMENT
    assert info.value.message == message


def test_txn_check():
    txn = TxnRequest(
        success=[
            delete(b"foo1"),
            RequestOp(TxnRequest(success=[put(b"foo")], failure=[put(b"foo")])),
        ]
    )
    check_txn_request(txn)
    puts, dels = check_intervals(txn.success)
    assert puts == {b"foo"}
    assert dels == [KeyRange(b"foo1", b"")]


def test_range_request_needs_key():
    expect_invalid(check_range_request, RangeRequest(key=b""), "key is not provided")


def test_range_request_invalid_sort():
    expect_invalid(
        check_range_request, RangeRequest(key=b"a", sort_order=7), "invalid sort option"
    )
    expect_invalid(
        check_range_request, RangeRequest(key=b"a", sort_target=9), "invalid sort option"
    )


def test_range_request_valid_sort_accepted():
    req = RangeRequest(key=b"a", sort_order=SortOrder.DESCEND, sort_target=SortTarget.MOD)
    assert check_range_request(req) is None
    assert req.sort_order == 2


def test_put_request_rules():
    expect_invalid(check_put_request, PutRequest(key=b""), "key is not provided")
    expect_invalid(
        check_put_request,
        PutRequest(key=b"foo", value=b"bar", ignore_value=True),
        "value is provided",
    )
    expect_invalid(
        check_put_request,
        PutRequest(key=b"foo", lease=5, ignore_lease=True),
        "lease is provided",
    )


def test_put_ignore_value_without_value_passes():
    req = PutRequest(key=b"foo", ignore_value=True)
    assert check_put_request(req) is None
    assert req.value == b""


def test_delete_range_needs_key():
    expect_invalid(
        check_delete_range_request, DeleteRangeRequest(key=b""), "key is not provided"
    )


def test_txn_too_many_ops():
    txn = TxnRequest(success=[put(bytes([i + 1])) for i in range(129)])
    expect_invalid(check_txn_request, txn, "too many operations in txn request")


def test_txn_at_limit_accepted():
    txn = TxnRequest(success=[put(b"k%d" % i) for i in range(128)])
    check_txn_request(txn)
    puts, _ = check_intervals(txn.success)
    assert len(puts) == 128


def test_txn_compare_needs_key():
    expect_invalid(
        check_txn_request, TxnRequest(compare=[Compare(key=b"")]), "key is not provided"
    )


def test_txn_missing_request():
    expect_invalid(check_txn_request, TxnRequest(success=[RequestOp()]), "key not found")


def test_txn_nested_invalid_request():
    txn = TxnRequest(failure=[RequestOp(TxnRequest(success=[put(b"")]))])
    expect_invalid(check_txn_request, txn, "key is not provided")


def test_duplicate_put_rejected():
    txn = TxnRequest(success=[put(b"foo"), put(b"foo")])
    expect_invalid(check_txn_request, txn, "duplicate key given in txn request")


def test_put_in_deleted_range_rejected():
    txn = TxnRequest(success=[delete(b"a", b"c"), put(b"b")])
    expect_invalid(check_txn_request, txn, "duplicate key given in txn request")


def test_put_outside_deleted_range_accepted():
    puts, dels = check_intervals([delete(b"a", b"c"), put(b"c")])
    assert puts == {b"c"}
    assert dels == [KeyRange(b"a", b"c")]


def test_nested_put_conflicts_with_outer_put():
    ops = [put(b"foo"), RequestOp(TxnRequest(success=[put(b"foo")]))]
    expect_invalid(check_intervals, ops, "duplicate key given in txn request")


def test_nested_delete_conflicts_with_outer_put():
    ops = [RequestOp(TxnRequest(failure=[delete(b"f", b"g")])), put(b"foo")]
    expect_invalid(check_intervals, ops, "duplicate key given in txn request")


def test_two_nested_txns_putting_same_key_rejected():
    ops = [
        RequestOp(TxnRequest(success=[put(b"x")])),
        RequestOp(TxnRequest(failure=[put(b"x")])),
    ]
    expect_invalid(check_intervals, ops, "duplicate key given in txn request")


def test_key_ranges_for_each_request():
    assert key_ranges_for(RangeRequest(key=b"a", range_end=b"c")) == [KeyRange(b"a", b"c")]
    assert key_ranges_for(PutRequest(key=b"foo", value=b"bar")) == [KeyRange(b"foo", b"")]
    assert key_ranges_for(DeleteRangeRequest(key=b"d")) == [KeyRange(b"d", b"")]
    txn = TxnRequest(compare=[Compare(b"a"), Compare(b"b", b"z")])
    assert key_ranges_for(txn) == [KeyRange(b"a", b""), KeyRange(b"b", b"z")]


def test_key_ranges_for_rejects_other_requests():
    with pytest.raises(TypeError):
        key_ranges_for(Compare(b"a"))