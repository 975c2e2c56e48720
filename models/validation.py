"""
Tagged validation outcomes.

`validate(value, contract)` checks a raw value against a contract (a pydantic
model class or any type pydantic can build a TypeAdapter for) and returns
either `Ok(value)` or `Invalid(errors)`. Malformed input never raises.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any, Generic, List, TypeVar, Union

from pydantic import BaseModel, TypeAdapter, ValidationError

T = TypeVar("T")


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Invalid:
    errors: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return False

    def describe(self) -> str:
        return "; ".join(self.errors) or "invalid value"


Outcome = Union[Ok[T], Invalid]


@lru_cache(maxsize=None)
def _adapter(contract: Any) -> TypeAdapter:
    return TypeAdapter(contract)


def format_errors(exc: ValidationError) -> List[str]:
    """Flatten a pydantic ValidationError into `path: message` strings."""
    messages = []
    for err in exc.errors():
        path = ".".join(str(p) for p in err.get("loc", ()))
        messages.append(f"{path}: {err.get('msg')}" if path else str(err.get("msg")))
    return messages


def validate(value: Any, contract: Any) -> Outcome:
    try:
        if isinstance(contract, type) and issubclass(contract, BaseModel):
            if isinstance(value, contract):
                return Ok(value)
            return Ok(contract.model_validate(value))
        return Ok(_adapter(contract).validate_python(value))
    except ValidationError as e:
        return Invalid(format_errors(e))
    except (TypeError, ValueError) as e:
        return Invalid([str(e)])
