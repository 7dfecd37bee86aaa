"""
Underbar - a small utility belt for sequences, mappings and functions.

Every collection helper is built on top of a single iteration primitive,
`each`. Higher-level operations compose `map`, `filter` and `reduce`
rather than looping on their own.

Architecture: Functional Core, Imperative Shell
- Data: enums, sentinels and small dataclasses
- Computations: pure functions over caller-owned collections
- Decorators: wrappers owning private closure state
- Effects: timer scheduling and logging at the edges only
"""

from __future__ import annotations

import inspect
import logging
import random
import sys
import threading
from collections.abc import Mapping, MutableMapping, Sequence
from dataclasses import dataclass, field
from enum import Enum, auto
from functools import wraps
from typing import Any, Callable, Protocol

__all__ = [
    "MISSING",
    "CollectionKind",
    "InvalidArgumentError",
    "Scheduler",
    "ThreadingScheduler",
    "UnderbarError",
    "collection_kind",
    "contains",
    "defaults",
    "delay",
    "difference",
    "each",
    "every",
    "extend",
    "filter",
    "first",
    "flatten",
    "index_of",
    "intersection",
    "invoke",
    "last",
    "map",
    "memoize",
    "once",
    "pluck",
    "reduce",
    "reject",
    "setup_logger",
    "shuffle",
    "some",
    "sort_by",
    "strict_equals",
    "throttle",
    "uniq",
    "zip",
]

logger = logging.getLogger("underbar")


# =============================================================================
# DOMAIN TYPES (Data)
# =============================================================================


class _Missing(Enum):
    MISSING = auto()

    def __repr__(self) -> str:
        return "MISSING"


# Stands in for "no value": empty first/last, zip padding, omitted arguments.
MISSING = _Missing.MISSING


class CollectionKind(Enum):
    """Shape of a collection, decided once per call."""

    SEQUENCE = auto()
    MAPPING = auto()


class UnderbarError(Exception):
    """Base class for errors raised by underbar."""


class InvalidArgumentError(UnderbarError, ValueError):
    """An argument is outside the domain an operation accepts."""


class Scheduler(Protocol):
    """Deferred-execution service used by `delay` and `throttle`."""

    def schedule(self, wait_ms: float, callback: Callable[[], Any]) -> Any:
        """Run `callback` no earlier than `wait_ms` from now; return a handle."""
        ...


class ThreadingScheduler:
    """Scheduler backed by daemon `threading.Timer` objects."""

    def schedule(self, wait_ms: float, callback: Callable[[], Any]) -> threading.Timer:
        timer = threading.Timer(max(wait_ms, 0) / 1000.0, callback)
        timer.daemon = True
        timer.start()
        return timer


@dataclass
class _ThrottleState:
    """Private state owned by a single throttled wrapper."""

    window_open: bool = False
    pending: bool = False
    result: Any = None
    args: tuple[Any, ...] = ()
    kwargs: dict[str, Any] = field(default_factory=dict)
    lock: threading.RLock = field(default_factory=threading.RLock)


# =============================================================================
# HELPERS
# =============================================================================


def strict_equals(a: Any, b: Any) -> bool:
    """
    Equality without type coercion.

    `1`, `1.0` and `True` are all different values here, while two lists
    with equal contents compare equal.
    """
    return a is b or (type(a) is type(b) and a == b)


def collection_kind(collection: Any) -> CollectionKind:
    """Classify a collection. Pure: Any -> CollectionKind."""
    if isinstance(collection, Mapping):
        return CollectionKind.MAPPING
    return CollectionKind.SEQUENCE


def _positional_arity(fn: Callable[..., Any]) -> int | None:
    """Number of positional parameters `fn` takes, or None if unbounded."""
    if isinstance(fn, type):
        return 1
    try:
        parameters = inspect.signature(fn).parameters.values()
    except (TypeError, ValueError):
        return 1

    count = 0
    for param in parameters:
        if param.kind is inspect.Parameter.VAR_POSITIONAL:
            return None
        if param.kind in (
            inspect.Parameter.POSITIONAL_ONLY,
            inspect.Parameter.POSITIONAL_OR_KEYWORD,
        ):
            count += 1
    return count


def _as_iterator(fn: Callable[..., Any]) -> Callable[[Any, Any, Any], Any]:
    """
    Adapt `fn` to the (value, key, collection) calling convention.

    Callbacks that declare fewer positional parameters only receive the
    leading arguments, so `lambda value: ...` is as valid as
    `lambda value, key, collection: ...`.
    """
    arity = _positional_arity(fn)
    if arity is None or arity >= 3:
        return fn

    def adapted(value: Any, key: Any, collection: Any) -> Any:
        return fn(*(value, key, collection)[:arity])

    return adapted


def _identity(value: Any) -> Any:
    return value


def _property(record: Any, name: str) -> Any:
    if isinstance(record, Mapping):
        return record[name]
    return getattr(record, name)


# =============================================================================
# ITERATION PRIMITIVE
# =============================================================================


def each(collection: Sequence[Any] | Mapping[Any, Any], iterator: Callable[..., Any] | None = None) -> None:
    """
    Call iterator(value, key, collection) for every element of a collection.

    Sequences are visited by index in order; mappings by key in the
    mapping's own order. A missing iterator makes this a no-op.
    """
    if iterator is None:
        return

    visit = _as_iterator(iterator)
    match collection_kind(collection):
        case CollectionKind.MAPPING:
            for key in collection:
                visit(collection[key], key, collection)
        case CollectionKind.SEQUENCE:
            for index in range(len(collection)):
                visit(collection[index], index, collection)


# =============================================================================
# SEARCH & SLICING
# =============================================================================


def first(seq: Sequence[Any], n: int | _Missing = MISSING) -> Any:
    """
    Return the first element, or the first `n` elements as a sub-sequence.

    An empty sequence yields MISSING when `n` is omitted.
    """
    if n is MISSING:
        return seq[0] if len(seq) else MISSING
    return seq[: max(n, 0)]


def last(seq: Sequence[Any], n: int | _Missing = MISSING) -> Any:
    """Like `first`, but from the tail."""
    if n is MISSING:
        return seq[-1] if len(seq) else MISSING
    if n <= 0:
        return seq[:0]
    return seq[-n:]


def index_of(seq: Sequence[Any], target: Any) -> int:
    """Index of the first element strictly equal to `target`, or -1."""
    found = -1

    def check(value: Any, index: int) -> None:
        nonlocal found
        if found == -1 and strict_equals(value, target):
            found = index

    each(seq, check)
    return found


# =============================================================================
# FILTERING
# =============================================================================


def filter(collection: Sequence[Any] | Mapping[Any, Any], predicate: Callable[..., Any]) -> list[Any]:
    """Values for which predicate(value, key, collection) is truthy."""
    test = _as_iterator(predicate)
    result: list[Any] = []

    def keep(value: Any, key: Any, coll: Any) -> None:
        if test(value, key, coll):
            result.append(value)

    each(collection, keep)
    return result


def reject(collection: Sequence[Any] | Mapping[Any, Any], predicate: Callable[..., Any]) -> list[Any]:
    """Values for which the predicate is falsy."""
    test = _as_iterator(predicate)
    return filter(collection, lambda value, key, coll: not test(value, key, coll))


def uniq(
    seq: Sequence[Any],
    is_sorted: bool = False,
    iterator: Callable[..., Any] | None = None,
) -> list[Any]:
    """
    Produce a duplicate-free list, keeping first occurrences in order.

    Values are compared by strict equality after being passed through
    `iterator` (identity by default). When `is_sorted` is set, a value is
    only compared with its predecessor.
    """
    transform = _as_iterator(iterator or _identity)
    result: list[Any] = []
    seen: list[Any] = []

    def visit(value: Any, index: int, coll: Any) -> None:
        transformed = transform(value, index, coll)
        if is_sorted:
            duplicate = index > 0 and strict_equals(transformed, seen[-1])
            seen.append(transformed)
        else:
            duplicate = contains(seen, transformed)
            if not duplicate:
                seen.append(transformed)
        if not duplicate:
            result.append(value)

    each(seq, visit)
    return result


def intersection(*seqs: Sequence[Any]) -> list[Any]:
    """Values present in every sequence, in first-sequence order, deduplicated."""
    if not seqs:
        return []
    head, rest = seqs[0], seqs[1:]
    shared = filter(head, lambda value: every(rest, lambda other: contains(other, value)))
    return uniq(shared)


def difference(seq: Sequence[Any], *others: Sequence[Any]) -> list[Any]:
    """Values of `seq` that appear in none of the other sequences."""
    return reject(seq, lambda value: some(others, lambda other: contains(other, value)))


def flatten(nested: Sequence[Any]) -> list[Any]:
    """Flatten arbitrarily nested lists and tuples into one new list."""
    result: list[Any] = []

    def flat(value: Any) -> None:
        if isinstance(value, (list, tuple)):
            each(value, flat)
        else:
            result.append(value)

    each(nested, flat)
    return result


# =============================================================================
# TRANSFORMATION
# =============================================================================


def map(collection: Sequence[Any] | Mapping[Any, Any], fn: Callable[..., Any]) -> list[Any]:
    """Results of fn(value, key, collection) for every element, in order."""
    transform = _as_iterator(fn)
    result: list[Any] = []
    each(collection, lambda value, key, coll: result.append(transform(value, key, coll)))
    return result


def pluck(records: Sequence[Any], name: str) -> list[Any]:
    """Extract one property from every record."""
    return map(records, lambda record: _property(record, name))


def invoke(records: Sequence[Any], method: str | Callable[..., Any], *args: Any) -> list[Any]:
    """
    Call a method on every record and collect the results.

    `method` is either the name of a method looked up on each record, or a
    callable receiving the record as its first argument.
    """
    if isinstance(method, str):
        return map(records, lambda record: getattr(record, method)(*args))
    return map(records, lambda record: method(record, *args))


def sort_by(seq: Sequence[Any], key: str | Callable[[Any], Any]) -> list[Any]:
    """
    Return a new list ordered by a property name or a key function.

    The sort is stable. Raises InvalidArgumentError for an empty sequence.
    """
    if not len(seq):
        raise InvalidArgumentError("sort_by() requires a non-empty sequence")
    if isinstance(key, str):
        return sorted(seq, key=lambda record: _property(record, key))
    return sorted(seq, key=key)


def shuffle(seq: Sequence[Any], rng: random.Random | None = None) -> list[Any]:
    """Return a shuffled copy of `seq` (Fisher-Yates). The input is untouched."""
    rng = rng or random.Random()
    shuffled = list(seq)
    for i in range(len(shuffled) - 1, 0, -1):
        j = rng.randint(0, i)
        shuffled[i], shuffled[j] = shuffled[j], shuffled[i]
    return shuffled


def zip(*seqs: Sequence[Any], fillvalue: Any = MISSING) -> list[list[Any]]:
    """
    Group elements sharing an index across sequences.

    The result is as long as the longest input; shorter inputs are padded
    with `fillvalue`.
    """
    length = reduce(seqs, lambda longest, seq: max(longest, len(seq)), 0)
    return [
        map(seqs, lambda seq: seq[i] if i < len(seq) else fillvalue)
        for i in range(length)
    ]


# =============================================================================
# AGGREGATION
# =============================================================================


def reduce(
    collection: Sequence[Any] | Mapping[Any, Any],
    fn: Callable[[Any, Any], Any],
    initial: Any = MISSING,
) -> Any:
    """
    Left-fold a collection with fn(accumulator, value).

    The accumulator starts at `initial`, or 0 when it is omitted, so
    non-numeric folds must pass their own starting value.
    """
    accumulator = 0 if initial is MISSING else initial

    def step(value: Any) -> None:
        nonlocal accumulator
        accumulator = fn(accumulator, value)

    each(collection, step)
    return accumulator


def contains(collection: Sequence[Any] | Mapping[Any, Any], target: Any) -> bool:
    """Whether any value is strictly equal to `target`."""
    return reduce(
        collection,
        lambda found, value: found or strict_equals(value, target),
        False,
    )


def every(collection: Sequence[Any] | Mapping[Any, Any], predicate: Callable[..., Any] | None = None) -> bool:
    """True if the predicate (truthiness by default) holds for all values."""
    test = predicate or _identity
    return reduce(
        collection,
        lambda all_true, value: all_true and bool(test(value)),
        True,
    )


def some(collection: Sequence[Any] | Mapping[Any, Any], predicate: Callable[..., Any] | None = None) -> bool:
    """True if the predicate (truthiness by default) holds for any value."""
    test = predicate or _identity
    return not every(collection, lambda value: not test(value))


# =============================================================================
# MAPPINGS
# =============================================================================


def extend(target: MutableMapping[Any, Any], *sources: Mapping[Any, Any]) -> MutableMapping[Any, Any]:
    """Copy every key of every source into `target`. Mutates and returns it."""

    def assign(value: Any, key: Any) -> None:
        target[key] = value

    each(sources, lambda source: each(source, assign))
    return target


def defaults(target: MutableMapping[Any, Any], *sources: Mapping[Any, Any]) -> MutableMapping[Any, Any]:
    """Like `extend`, but never overwrites a key `target` already has."""

    def assign(value: Any, key: Any) -> None:
        if key not in target:
            target[key] = value

    each(sources, lambda source: each(source, assign))
    return target


# =============================================================================
# DECORATORS
# =============================================================================


def once(fn: Callable[..., Any]) -> Callable[..., Any]:
    """Wrap `fn` so it runs at most once; later calls return the first result."""
    called = False
    result: Any = None

    @wraps(fn)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        nonlocal called, result
        if not called:
            result = fn(*args, **kwargs)
            called = True
        return result

    return wrapper


def memoize(fn: Callable[[Any], Any]) -> Callable[[Any], Any]:
    """
    Cache the results of a single-argument function.

    The argument must be hashable. Entries are keyed by `(type(arg), arg)`
    so that `1`, `1.0` and `True` never share a result. The cache is
    unbounded and exposed as `wrapper.cache`.
    """
    cache: dict[tuple[type, Any], Any] = {}

    @wraps(fn)
    def wrapper(arg: Any) -> Any:
        key = (type(arg), arg)
        if key not in cache:
            cache[key] = fn(arg)
        return cache[key]

    wrapper.cache = cache  # type: ignore[attr-defined]
    return wrapper


def delay(
    fn: Callable[..., Any],
    wait_ms: float,
    *args: Any,
    scheduler: Scheduler | None = None,
) -> Any:
    """
    Call fn(*args) after at least `wait_ms` milliseconds.

    Returns immediately with the scheduler's handle; with the default
    scheduler that is a `threading.Timer` which can be cancelled.
    """
    if scheduler is None:
        scheduler = ThreadingScheduler()
    logger.debug("Delaying %s by %sms", getattr(fn, "__name__", fn), wait_ms)
    return scheduler.schedule(wait_ms, lambda: fn(*args))


def throttle(
    fn: Callable[..., Any],
    wait_ms: float,
    scheduler: Scheduler | None = None,
) -> Callable[..., Any]:
    """
    Wrap `fn` so it executes at most once per `wait_ms` window.

    The first call runs immediately and opens a window. Calls made while the
    window is open are coalesced into one trailing execution, using the most
    recent arguments, when the window closes. Every call returns the latest
    computed result.
    """
    if scheduler is None:
        scheduler = ThreadingScheduler()
    state = _ThrottleState()
    name = getattr(fn, "__name__", repr(fn))

    def execute(args: tuple[Any, ...], kwargs: dict[str, Any]) -> None:
        state.result = fn(*args, **kwargs)
        state.window_open = True
        scheduler.schedule(wait_ms, close_window)

    def close_window() -> None:
        with state.lock:
            state.window_open = False
            if not state.pending:
                logger.debug("Throttle window closed for %s", name)
                return
            state.pending = False
            logger.debug("Running trailing call of %s", name)
            execute(state.args, state.kwargs)

    @wraps(fn)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        with state.lock:
            if state.window_open:
                state.pending = True
                state.args, state.kwargs = args, kwargs
            else:
                logger.debug("Throttle window opened for %s", name)
                execute(args, kwargs)
            return state.result

    return wrapper


# =============================================================================
# LOGGING
# =============================================================================


def setup_logger(
    name: str = "underbar",
    level: str = "INFO",
    format_string: str | None = None,
) -> logging.Logger:
    """
    Configure and return a logger writing to stdout.

    Handlers are only attached the first time; later calls return the
    already configured logger unchanged.
    """
    format_string = format_string or "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    configured = logging.getLogger(name)

    if not configured.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(fmt=format_string, datefmt="%Y-%m-%d %H:%M:%S"))
        configured.addHandler(handler)
        configured.setLevel(getattr(logging, level.upper()))
        configured.propagate = False

    return configured
