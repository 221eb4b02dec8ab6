"""PydanticSchema — record schema backed by a Pydantic model class."""

from __future__ import annotations

import types
from typing import TYPE_CHECKING, Annotated, Any, Union, get_args, get_origin

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from .result import ValidationResult

if TYPE_CHECKING:
    from collections.abc import Collection, Mapping

    from pydantic import BaseModel
    from pydantic.fields import FieldInfo


def _allows_none(tp: Any) -> bool:
    if tp is Any or tp is None or tp is type(None):
        return True
    origin = get_origin(tp)
    if origin is Annotated:
        return _allows_none(get_args(tp)[0])
    if origin is Union or origin is types.UnionType:
        return any(_allows_none(arg) for arg in get_args(tp))
    return False


def _collect_errors(
    result: ValidationResult, name: str, exc: PydanticValidationError
) -> None:
    for error in exc.errors():
        loc = ".".join(str(p) for p in (name, *error.get("loc", ())))
        result.add_error(loc, error.get("msg", "validation error"))


class PydanticSchema:
    """Validates record payloads field by field through a Pydantic model.

    Each field is validated with a ``TypeAdapter`` built from its annotation
    and constraints, so partial payloads (updates, nested updates) are
    checked with the same rules as full ones. Pydantic errors are converted
    into ``{field: [messages]}``.

    Unknown keys are dropped, or rejected when the model sets
    ``extra="forbid"``.
    """

    def __init__(self, model: type[BaseModel]) -> None:
        self.model = model
        self._fields: dict[str, FieldInfo] = dict(model.model_fields)
        self._adapters: dict[str, TypeAdapter[Any]] = {}
        self._forbid_extra = model.model_config.get("extra") == "forbid"

    @property
    def field_names(self) -> frozenset[str]:
        return frozenset(self._fields)

    def has_field(self, name: str) -> bool:
        return name in self._fields

    def is_nullable(self, name: str) -> bool:
        info = self._fields.get(name)
        if info is None:
            return False
        return _allows_none(info.annotation)

    def _adapter(self, name: str) -> TypeAdapter[Any]:
        adapter = self._adapters.get(name)
        if adapter is None:
            info = self._fields[name]
            tp: Any = info.annotation if info.annotation is not None else Any
            if info.metadata:
                tp = Annotated[(tp, *info.metadata)]
            adapter = TypeAdapter(tp)
            self._adapters[name] = adapter
        return adapter

    def coerce(self, name: str, value: Any) -> Any:
        """Coerce *value* to the type of *name*; unknown fields pass through.

        Raises:
            ValidationError: If the value cannot be converted.
        """
        if name not in self._fields:
            return value
        result = ValidationResult()
        try:
            return self._adapter(name).validate_python(value)
        except PydanticValidationError as exc:
            _collect_errors(result, name, exc)
        result.raise_if_invalid()
        return value

    def validate(
        self,
        data: Mapping[str, Any],
        *,
        partial: bool = False,
        skip_required: Collection[str] = (),
    ) -> dict[str, Any]:
        """Validate *data* and return the coerced values.

        Args:
            data: The payload to validate.
            partial: When ``True`` only supplied fields are checked (update).
                Otherwise missing required fields are reported and missing
                optional fields get their declared defaults.
            skip_required: Fields the engine fills itself (primary keys,
                tenant column) that may be absent even on a full payload.

        Raises:
            ValidationError: With every field error collected.
        """
        result = ValidationResult()
        out: dict[str, Any] = {}
        for key, value in data.items():
            if key not in self._fields:
                if self._forbid_extra:
                    result.add_error(key, "Extra inputs are not permitted")
                continue
            try:
                out[key] = self._adapter(key).validate_python(value)
            except PydanticValidationError as exc:
                _collect_errors(result, key, exc)

        if not partial:
            for name, info in self._fields.items():
                if name in data:
                    continue
                if info.is_required():
                    if name not in skip_required:
                        result.add_error(name, "Field required")
                    continue
                out[name] = info.get_default(call_default_factory=True)

        result.raise_if_invalid()
        return out
