"""Success/error values returned across the scraping core boundary."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Generic, Iterator, Optional, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class HttpError:
    """Error payload mapped verbatim onto an HTTP response."""

    status: int
    message: str
    kind: str = "upstream_failure"

    @classmethod
    def not_found(cls, message: str) -> "HttpError":
        return cls(status=404, message=message, kind="not_found")

    @classmethod
    def invalid_input(cls, message: str) -> "HttpError":
        return cls(status=400, message=message, kind="invalid_input")

    @classmethod
    def upstream_failure(cls, message: str) -> "HttpError":
        return cls(status=500, message=message, kind="upstream_failure")

    def to_dict(self) -> Dict[str, Any]:
        return {"status": self.status, "message": self.message, "kind": self.kind}


@dataclass(frozen=True)
class Result(Generic[T]):
    """Either a value or an :class:`HttpError`, never both.

    Unpacks like a pair so callers can write ``value, error = result``.
    """

    value: Optional[T] = None
    error: Optional[HttpError] = None

    def __post_init__(self) -> None:
        if self.value is not None and self.error is not None:
            raise ValueError("Result cannot carry both a value and an error")

    @classmethod
    def success(cls, value: T) -> "Result[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: HttpError) -> "Result[T]":
        return cls(error=error)

    @property
    def ok(self) -> bool:
        return self.error is None

    def __iter__(self) -> Iterator[Any]:
        yield self.value
        yield self.error
