"""
Validation boundary for inbound shapes.

``validate`` never raises on bad input; it returns ``Valid`` or ``Invalid`` so
callers decide how to surface the failure. ``require_valid`` is the variant
used inside cart/order operations, where an invalid shape is a hard failure.
"""
from dataclasses import dataclass
from typing import Any, Generic, List, Type, TypeVar, Union

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from storefront.exceptions import ValidationError

T = TypeVar("T", bound=BaseModel)


@dataclass(frozen=True)
class Valid(Generic[T]):
    value: T


@dataclass(frozen=True)
class Invalid:
    reasons: List[str]

    @property
    def message(self) -> str:
        return "; ".join(self.reasons)


def _reasons(exc: PydanticValidationError) -> List[str]:
    reasons = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error["loc"])
        reasons.append(f"{location}: {error['msg']}" if location else error["msg"])
    return reasons


def validate(model: Type[T], data: Any) -> Union[Valid[T], Invalid]:
    """Validate ``data`` against ``model``"""
    if isinstance(data, model):
        data = data.model_dump()
    try:
        return Valid(model.model_validate(data))
    except PydanticValidationError as e:
        return Invalid(_reasons(e))


def require_valid(model: Type[T], data: Any) -> T:
    result = validate(model, data)
    if isinstance(result, Invalid):
        raise ValidationError(result.message, result.reasons)
    return result.value
