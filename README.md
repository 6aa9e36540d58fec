# xlinekv

Building blocks for the request path of a distributed key-value server.
The package is plain Python and has no third-party dependencies.

## Modules

- `xlinekv.state` holds `State`, a node's view of its cluster. It keeps the
  node's own id (`State.id`), the addresses of all members (`State.members`)
  and the current leader. It provides:
  - `self_address()`, which raises `LookupError` if the node is not a member;
  - `leader_address()` and `is_leader()`;
  - `others()`, the addresses of every member except this node;
  - `set_leader_id(leader_id)`, which returns whether this node's own
    leadership changed and wakes waiters once a leader is set;
  - `leader_listener()`, a future that resolves the next time a leader is set;
  - `wait_leader()`, a coroutine that returns the leader's address once one
    is known.

  The module also defines `StatusError` and `StatusCode`, the error type used
  across the package.
- `xlinekv.command` holds `KeyRange`. Its `start` and `end` are byte strings.
  An empty `end` means a single key, and `b"\x00"` means unbounded. The class
  offers `is_conflicted`, `contains_key` and `contains_range`. The module also
  has:
  - `get_prefix(key)`, which computes the end key of a prefix range;
  - `get_range_type(key, range_end)` together with `RangeType`;
  - `Command`, a proposal with its key ranges, a `RequestKind`, an id and an
    optional lease id. `Command.is_conflict(other)` decides whether two
    proposals must be ordered.
- `xlinekv.kv_check` holds the request types and the checks run before a
  request is accepted:
  - request types: `RangeRequest`, `PutRequest`, `DeleteRangeRequest`,
    `Compare`, `RequestOp` and `TxnRequest`;
  - the enums `SortOrder` and `SortTarget`;
  - the checks `check_range_request`, `check_put_request`,
    `check_delete_range_request`, `check_txn_request` and `check_intervals`;
  - `key_ranges_for(request)`, which gives the key ranges a request touches.

  A transaction is rejected in three cases:
  - it has more than 128 operations in its compares, its success branch or its
    failure branch;
  - it puts the same key twice;
  - it puts a key inside a range it also deletes.

  The success and failure branches of one nested transaction may put the same
  key.
- `xlinekv.watch` serves one watch stream. It has:
  - `WatchHandle`, which hands out watch ids (starting from 1, with 0 meaning
    "pick one"), creates and cancels watches, forwards store events, and
    cancels all of its remaining watches on `close()`;
  - `run_watch_task(watcher, responses, requests)`, which reads requests from
    an async iterable and store events from the handle's queue until the
    client stops or sending a response fails;
  - the messages `WatchCreateRequest`, `WatchCancelRequest`, `WatchEvent` and
    `WatchResponse`.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Examples

```python
from xlinekv.command import KeyRange, get_prefix

foo = KeyRange(b"foo", get_prefix(b"foo"))   # every key starting with "foo"
assert foo.contains_key(b"foo/abc")
assert foo.is_conflicted(KeyRange(b"foo1", b""))
assert not foo.is_conflicted(KeyRange(b"fop", b""))
```

Validating a transaction:

```python
from xlinekv.kv_check import PutRequest, RequestOp, TxnRequest, check_txn_request
from xlinekv.state import StatusCode, StatusError

txn = TxnRequest(success=[
    RequestOp(PutRequest(key=b"a", value=b"1")),
    RequestOp(PutRequest(key=b"a", value=b"2")),
])
try:
    check_txn_request(txn)
except StatusError as err:
    assert err.code is StatusCode.INVALID_ARGUMENT
    print(err.message)  # duplicate key given in txn request
```

Errors are raised as `StatusError`. Each one carries a `code` (a `StatusCode`
such as `INVALID_ARGUMENT`, `NOT_FOUND` or `ALREADY_EXISTS`) and a `message`.

## What this package does not do

There is no network server, no command to start one, no storage engine and no
consensus protocol here.

`run_watch_task` and `WatchHandle` need a watcher object supplied by the
caller. That object must provide `watch(watch_id, key_range, start_revision,
filters, event_sink)` and `cancel(watch_id)`, and the response sink must
provide an async `put`.

The request checks only validate requests. They do not execute them.