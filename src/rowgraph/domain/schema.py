"""Schema catalog: registered dataclasses described as ordered, typed fields.

Each registered class becomes a :class:`TypeDescriptor`. A field is one of
four kinds:

- ``SCALAR``: ``bool``, ``int`` (signed 64-bit), ``float``, ``str``, ``bytes``,
  timezone-aware ``datetime``, ``date`` or an ``Enum`` subclass, optionally
  ``| None``
- ``OBJECT``: a reference to another registered class
- ``OBJECT_LIST``: ``list[Model]`` (elements may be ``Model | None``)
- ``SCALAR_LIST``: ``list[<scalar>]``

Descriptors are built on first use rather than at registration time, so a class
may reference itself or classes registered after it.
"""

from __future__ import annotations

import dataclasses
import types
import typing
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import TYPE_CHECKING, Any, Final, TypeVar, overload

from .errors import FieldTypeError, SchemaDefinitionError, UnknownTypeError

if TYPE_CHECKING:
    from collections.abc import Callable

T = TypeVar("T", bound=type)

METADATA_KEY: Final[str] = "rowgraph"
SCALAR_TYPES: Final[tuple[type, ...]] = (bool, int, float, str, bytes, datetime, date)
KEY_TYPES: Final[tuple[type, ...]] = (int, str)
INT64_MIN: Final[int] = -(2**63)
INT64_MAX: Final[int] = 2**63 - 1


class FieldKind(Enum):
    SCALAR = "scalar"
    OBJECT = "object"
    OBJECT_LIST = "object_list"
    SCALAR_LIST = "scalar_list"


@dataclass(frozen=True, slots=True)
class FieldOptions:
    primary_key: bool = False
    unique: bool = False
    index: bool = False
    ignore: bool = False

    @property
    def is_column_option(self) -> bool:
        return self.primary_key or self.unique or self.index


_DEFAULT_OPTIONS: Final[FieldOptions] = FieldOptions()


def column(
    *,
    primary_key: bool = False,
    unique: bool = False,
    index: bool = False,
    **kwargs: Any,
) -> Any:
    """Declare a persisted dataclass field with storage options.

    Remaining keyword arguments (``default``, ``default_factory`` ...) are passed
    through to :func:`dataclasses.field`.
    """

    metadata = dict(kwargs.pop("metadata", None) or {})
    metadata[METADATA_KEY] = FieldOptions(primary_key=primary_key, unique=unique, index=index)
    return dataclasses.field(metadata=metadata, **kwargs)


def ignored(**kwargs: Any) -> Any:
    """Declare a dataclass field that is never written to the store."""

    metadata = dict(kwargs.pop("metadata", None) or {})
    metadata[METADATA_KEY] = FieldOptions(ignore=True)
    return dataclasses.field(metadata=metadata, **kwargs)


def _matches_scalar(value: object, python_type: type) -> bool:
    if python_type is int:
        return isinstance(value, int) and not isinstance(value, bool)
    if python_type is date:
        return isinstance(value, date) and not isinstance(value, datetime)
    return isinstance(value, python_type)


def _unstorable_reason(value: object) -> str | None:
    if isinstance(value, datetime) and value.tzinfo is None:
        return "naive datetime values are not accepted, attach a tzinfo"
    if isinstance(value, int) and not isinstance(value, bool) and not INT64_MIN <= value <= INT64_MAX:
        return f"{value} does not fit in a signed 64-bit integer"
    return None


@dataclass(frozen=True, slots=True)
class FieldDescriptor:
    name: str
    kind: FieldKind
    python_type: type | None = None
    target: str | None = None
    nullable: bool = False
    element_nullable: bool = False
    primary_key: bool = False
    unique: bool = False
    indexed: bool = False

    @property
    def is_scalar(self) -> bool:
        return self.kind is FieldKind.SCALAR

    @property
    def is_list(self) -> bool:
        return self.kind in (FieldKind.OBJECT_LIST, FieldKind.SCALAR_LIST)

    @property
    def type_label(self) -> str:
        base = self.target if self.python_type is None else self.python_type.__name__
        if self.is_list:
            element = f"{base} | None" if self.element_nullable else str(base)
            return f"list[{element}]"
        return f"{base} | None" if self.nullable else str(base)

    def validate(self, owner: str, value: object, *, element: bool = False) -> None:
        """Raise :class:`FieldTypeError` unless ``value`` fits this scalar field."""

        if self.python_type is None:
            raise FieldTypeError(owner, self.name, "not a scalar field")
        if value is None:
            allowed = self.element_nullable if element else self.nullable
            if not allowed:
                raise FieldTypeError(owner, self.name, f"None is not allowed for {self.type_label}")
            return
        if not _matches_scalar(value, self.python_type):
            raise FieldTypeError(
                owner,
                self.name,
                f"expected {self.python_type.__name__}, got {type(value).__name__}",
            )
        reason = _unstorable_reason(value)
        if reason is not None:
            raise FieldTypeError(owner, self.name, reason)


@dataclass(frozen=True, slots=True)
class TypeDescriptor:
    name: str
    model: type
    fields: tuple[FieldDescriptor, ...]
    primary_key: FieldDescriptor | None = None
    ignored_fields: tuple[str, ...] = ()

    @property
    def scalar_fields(self) -> tuple[FieldDescriptor, ...]:
        return tuple(field for field in self.fields if field.is_scalar)

    @property
    def relation_fields(self) -> tuple[FieldDescriptor, ...]:
        """Reference and list fields, in declaration order."""
        return tuple(field for field in self.fields if not field.is_scalar)

    def field(self, name: str) -> FieldDescriptor:
        for candidate in self.fields:
            if candidate.name == name:
                return candidate
        raise KeyError(f"{self.name} has no persisted field {name!r}")

    def key_of(self, obj: object) -> object:
        """Return the validated primary-key value of ``obj``."""

        if self.primary_key is None:
            raise SchemaDefinitionError(f"{self.name} does not declare a primary key")
        value = getattr(obj, self.primary_key.name)
        self.primary_key.validate(self.name, value)
        return value


def _unwrap_optional(annotation: object) -> tuple[object, bool]:
    origin = typing.get_origin(annotation)
    if origin is typing.Union or origin is types.UnionType:
        args = typing.get_args(annotation)
        non_none = [arg for arg in args if arg is not type(None)]
        if len(non_none) == 1 and len(args) == 2:  # noqa: PLR2004
            return non_none[0], True
    return annotation, False


def _is_scalar_type(annotation: object) -> bool:
    if not isinstance(annotation, type):
        return False
    return annotation in SCALAR_TYPES or issubclass(annotation, Enum)


class SchemaCatalog:
    """Registry mapping application dataclasses to type descriptors."""

    def __init__(self) -> None:
        self._names_by_class: dict[type, str] = {}
        self._classes_by_name: dict[str, type] = {}
        self._descriptors: dict[str, TypeDescriptor] = {}

    @overload
    def model(self, cls: T, *, name: str | None = None) -> T: ...

    @overload
    def model(self, cls: None = None, *, name: str | None = None) -> Callable[[T], T]: ...

    def model(self, cls: type | None = None, *, name: str | None = None) -> Any:
        """Class decorator registering a dataclass, usable bare or with ``name=``."""

        def decorate(target: type) -> type:
            return self.register(target, name=name)

        if cls is None:
            return decorate
        return decorate(cls)

    def register(self, cls: T, *, name: str | None = None) -> T:
        if not isinstance(cls, type) or not dataclasses.is_dataclass(cls):
            raise SchemaDefinitionError(f"Only dataclasses can be registered, got {cls!r}")
        type_name = name or cls.__name__
        existing_cls = self._classes_by_name.get(type_name)
        if existing_cls is not None and existing_cls is not cls:
            raise SchemaDefinitionError(f"Type name {type_name!r} is already registered")
        existing_name = self._names_by_class.get(cls)
        if existing_name is not None and existing_name != type_name:
            raise SchemaDefinitionError(f"{cls.__qualname__} is already registered as {existing_name}")
        self._names_by_class[cls] = type_name
        self._classes_by_name[type_name] = cls
        self._descriptors.clear()
        return cls

    def __contains__(self, model: object) -> bool:
        if isinstance(model, str):
            return model in self._classes_by_name
        return model in self._names_by_class

    def __len__(self) -> int:
        return len(self._classes_by_name)

    def describe(self, obj: object) -> TypeDescriptor:
        """Return the descriptor for the exact class of ``obj``."""
        return self.descriptor_for(type(obj))

    def descriptor_for(self, model: type | str) -> TypeDescriptor:
        if isinstance(model, str):
            if model not in self._classes_by_name:
                raise UnknownTypeError(model)
            type_name = model
        else:
            registered = self._names_by_class.get(model)
            if registered is None:
                raise UnknownTypeError(getattr(model, "__qualname__", repr(model)))
            type_name = registered
        descriptor = self._descriptors.get(type_name)
        if descriptor is None:
            descriptor = self._build(self._classes_by_name[type_name], type_name)
            self._descriptors[type_name] = descriptor
        return descriptor

    def descriptors(self) -> tuple[TypeDescriptor, ...]:
        return tuple(self.descriptor_for(type_name) for type_name in self._classes_by_name)

    def _build(self, cls: type, type_name: str) -> TypeDescriptor:
        try:
            hints = typing.get_type_hints(cls)
        except NameError as exc:
            raise SchemaDefinitionError(f"Cannot resolve annotations of {type_name}: {exc}") from exc

        fields: list[FieldDescriptor] = []
        ignored_names: list[str] = []
        for dc_field in dataclasses.fields(cls):
            options = dc_field.metadata.get(METADATA_KEY, _DEFAULT_OPTIONS)
            if options.ignore:
                ignored_names.append(dc_field.name)
                continue
            fields.append(self._describe_field(type_name, dc_field.name, hints[dc_field.name], options))

        keys = [field for field in fields if field.primary_key]
        if len(keys) > 1:
            names = ", ".join(field.name for field in keys)
            raise SchemaDefinitionError(f"{type_name} declares more than one primary key: {names}")
        return TypeDescriptor(
            name=type_name,
            model=cls,
            fields=tuple(fields),
            primary_key=keys[0] if keys else None,
            ignored_fields=tuple(ignored_names),
        )

    def _describe_field(
        self,
        type_name: str,
        field_name: str,
        annotation: object,
        options: FieldOptions,
    ) -> FieldDescriptor:
        inner, nullable = _unwrap_optional(annotation)
        label = f"{type_name}.{field_name}"

        if typing.get_origin(inner) is list:
            args = typing.get_args(inner)
            if len(args) != 1:
                raise SchemaDefinitionError(f"{label}: list fields need an element type")
            if options.is_column_option:
                raise SchemaDefinitionError(f"{label}: list fields cannot carry column options")
            element, element_nullable = _unwrap_optional(args[0])
            if isinstance(element, type) and element in self._names_by_class:
                return FieldDescriptor(
                    name=field_name,
                    kind=FieldKind.OBJECT_LIST,
                    target=self._names_by_class[element],
                    nullable=nullable,
                    element_nullable=element_nullable,
                )
            if _is_scalar_type(element):
                return FieldDescriptor(
                    name=field_name,
                    kind=FieldKind.SCALAR_LIST,
                    python_type=typing.cast("type", element),
                    nullable=nullable,
                    element_nullable=element_nullable,
                )
            raise SchemaDefinitionError(f"{label}: unsupported list element {element!r}")

        if isinstance(inner, type) and inner in self._names_by_class:
            if options.is_column_option:
                raise SchemaDefinitionError(f"{label}: reference fields cannot carry column options")
            return FieldDescriptor(
                name=field_name,
                kind=FieldKind.OBJECT,
                target=self._names_by_class[inner],
                nullable=nullable,
            )

        if _is_scalar_type(inner):
            python_type = typing.cast("type", inner)
            if options.primary_key and python_type not in KEY_TYPES:
                raise SchemaDefinitionError(
                    f"{label}: primary keys must be int or str, got {python_type.__name__}"
                )
            return FieldDescriptor(
                name=field_name,
                kind=FieldKind.SCALAR,
                python_type=python_type,
                nullable=nullable,
                primary_key=options.primary_key,
                unique=options.unique,
                indexed=options.index,
            )

        raise SchemaDefinitionError(f"{label}: unsupported annotation {annotation!r}")
