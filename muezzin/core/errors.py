"""
Error model: typed failures accumulated into an Errors value, and a Result that
carries either a success value or non-empty Errors.
"""
from typing import Any, Dict, Generic, Iterable, Iterator, List, NamedTuple, Optional, TypeVar

T = TypeVar("T")


class ErrorKind:
    """Kind of a single failure."""
    NOT_FOUND = "notFound"
    INVALID_INPUT = "invalidInput"
    DATABASE = "database"
    REQUEST_FAILED = "requestFailed"
    PARSING_FAILED = "parsingFailed"
    TIMEOUT = "timeout"


class SingleError(NamedTuple):
    """One failure: kind, human readable details and where it happened."""
    kind: str
    details: str = ""
    context: str = ""

    def with_details(self, details: str) -> "SingleError":
        return self._replace(details=details)

    def with_context(self, context: str) -> "SingleError":
        return self._replace(context=context)

    def to_json(self) -> Dict[str, str]:
        out = {"kind": self.kind}
        if self.details:
            out["details"] = self.details
        if self.context:
            out["context"] = self.context
        return out


class Errors:
    """
    Ordered, de-duplicated collection of SingleError.

    Empty means success. Equality ignores order so merge is commutative;
    iteration keeps first-seen order.
    """

    __slots__ = ("_items",)

    def __init__(self, items: Iterable[SingleError] = ()):
        seen = set()
        ordered = []
        for item in items:
            if item not in seen:
                seen.add(item)
                ordered.append(item)
        self._items = tuple(ordered)

    @classmethod
    def empty(cls) -> "Errors":
        return _EMPTY

    @classmethod
    def single(cls, kind: str, details: str = "", context: str = "") -> "Errors":
        return cls([SingleError(kind, details, context)])

    @classmethod
    def from_exception(cls, kind: str, exc: BaseException, context: str = "") -> "Errors":
        """Wrap an unexpected fault, keeping its message as details."""
        return cls.single(kind, str(exc) or exc.__class__.__name__, context)

    def merge(self, other: "Errors") -> "Errors":
        if not other:
            return self
        if not self:
            return other
        return Errors(self._items + tuple(other))

    def __add__(self, other: "Errors") -> "Errors":
        return self.merge(other)

    @property
    def is_empty(self) -> bool:
        return not self._items

    @property
    def non_empty(self) -> bool:
        return bool(self._items)

    @property
    def kinds(self) -> List[str]:
        kinds = []
        for item in self._items:
            if item.kind not in kinds:
                kinds.append(item.kind)
        return kinds

    def has_kind(self, kind: str) -> bool:
        return any(item.kind == kind for item in self._items)

    def __iter__(self) -> Iterator[SingleError]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, Errors):
            return NotImplemented
        return set(self._items) == set(other._items)

    def __hash__(self) -> int:
        return hash(frozenset(self._items))

    def __repr__(self) -> str:
        return f"Errors({list(self._items)!r})"

    def to_json(self) -> List[Dict[str, str]]:
        return [item.to_json() for item in self._items]


_EMPTY = Errors()


class Result(Generic[T]):
    """Either a success value or non-empty Errors, never both."""

    __slots__ = ("_value", "_errors")

    def __init__(self, value: Optional[T] = None, errors: Optional[Errors] = None):
        errors = errors if errors is not None else Errors.empty()
        if errors and value is not None:
            raise ValueError("Result cannot carry both a value and errors")
        self._value = value
        self._errors = errors

    @classmethod
    def ok(cls, value: T) -> "Result[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, errors: Errors) -> "Result[T]":
        if not errors:
            raise ValueError("A failed Result needs at least one error")
        return cls(errors=errors)

    @property
    def is_ok(self) -> bool:
        return not self._errors

    @property
    def is_failure(self) -> bool:
        return bool(self._errors)

    @property
    def value(self) -> T:
        if self._errors:
            raise ValueError(f"Result is a failure: {self._errors!r}")
        return self._value

    @property
    def errors(self) -> Errors:
        return self._errors

    def __repr__(self) -> str:
        if self._errors:
            return f"Result.failure({self._errors!r})"
        return f"Result.ok({self._value!r})"
