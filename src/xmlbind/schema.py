# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

from collections.abc import Callable, Iterable, Iterator, Mapping
from copy import deepcopy
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType

from .datamodel import Coercion, DataAdapterType
from .exceptions import SchemaError, ValueCoercionError
from .values import Record, Variant

__all__ = (  # noqa: RUF022
    'Role',
    'Cardinality',
    'Shape',
    'Primitive',
    'Nested',
    'VariantMap',
    'TaggedEnum',
    'UntaggedEnum',
    'Opaque',
    'FieldBinding',
    'Descriptor',

    'attribute',
    'text',
    'child',
    'children',
    'flag',
    'flatten',
    'tagged',
    'untagged',
    'unparsed',
)


type DefaultProvider = Callable[[], object]


class Role(Enum):
    Attribute = 'attribute'
    Text = 'text'
    Child = 'child'
    Flag = 'flag'
    UntaggedVariant = 'untagged-variant'
    Flatten = 'flatten'

    def __repr__(self) -> str:
        return f'{self.__class__.__qualname__}.{self.name}'


class Cardinality(Enum):
    Scalar = 'scalar'
    Optional = 'optional'
    Repeated = 'repeated'

    def __repr__(self) -> str:
        return f'{self.__class__.__qualname__}.{self.name}'


class Shape:
    """Base class for the shapes a bound value can take"""

    __slots__ = ()


class Primitive[T](Shape):
    __slots__ = 'coercion',

    coercion: Coercion[T]

    def __init__(self, data_type: type[T], /, adapter: DataAdapterType[T] | None = None) -> None:
        self.coercion = Coercion(data_type, adapter)

    def __repr__(self) -> str:
        adapter = self.coercion.adapter
        adapter_name = adapter.__qualname__ if adapter else None
        return f'{self.__class__.__name__}({self.type.__qualname__}, adapter={adapter_name})'

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Primitive):
            return self.coercion == other.coercion
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self.coercion)

    @property
    def type(self) -> type[T]:
        return self.coercion.type

    def parse(self, key: str, raw_text: str) -> T:
        """Convert XML text into a value, reporting errors against the given field key"""
        coercion = self.coercion
        try:
            return coercion.xml_parse(raw_text)
        except (ValueError, TypeError) as exc:
            raise ValueCoercionError(key, raw_text, coercion.target_name, str(exc)) from exc

    def format(self, key: str, value: object) -> str:
        """Convert a value into XML text, reporting errors against the given field key"""
        coercion = self.coercion
        # bool is an int subclass, but its text form doesn't parse back as an int
        if not isinstance(value, coercion.type) or (isinstance(value, bool) and not issubclass(coercion.type, bool)):
            raise ValueCoercionError(key, repr(value), coercion.target_name, f'value must be of type {coercion.type.__qualname__}')
        try:
            return coercion.xml_build(value)
        except (ValueError, TypeError) as exc:
            raise ValueCoercionError(key, repr(value), coercion.target_name, str(exc)) from exc


@dataclass(frozen=True, slots=True)
class Nested(Shape):
    descriptor: 'Descriptor'


class VariantMap(Mapping[str, 'Descriptor | None']):
    """
    The ordered, read-only map of the variants of an enum.

    It maps the element name of each variant to the descriptor of its payload,
    or to None for variants without a payload. When fallback is true, elements
    that match none of the variants are kept as Unparsed payloads instead of
    being rejected.

    An enum can also have one text variant, given as a (tag, type) pair. Non
    blank text found where the enum is expected is parsed as its payload and
    the variant is written back as text.
    """

    __slots__ = '_variants', 'fallback', 'text'

    text: tuple[str, Primitive] | None

    def __init__(self, variants: Mapping[str, 'Descriptor | None'] | Iterable[tuple[str, 'Descriptor | None']] = (), /, *, fallback: bool = False, text: tuple[str, type | Primitive] | None = None) -> None:
        items = list(variants.items() if isinstance(variants, Mapping) else variants)
        self._variants = dict(items)
        if len(self._variants) != len(items):
            raise SchemaError(f'duplicate variant names in {[name for name, _ in items]!r}')
        if not self._variants and not fallback and text is None:
            raise SchemaError('an enum must have at least one variant')
        for name, descriptor in self._variants.items():
            if descriptor is not None and not isinstance(descriptor, Descriptor):
                raise SchemaError(f'the {name!r} variant must map to a Descriptor or None, not {descriptor!r}')
        match text:
            case None:
                self.text = None
            case (str(tag), Primitive() as shape) if tag not in self._variants:
                self.text = tag, shape
            case (str(tag), type() as data_type) if tag not in self._variants:
                self.text = tag, Primitive(data_type)
            case (str(tag), _) if tag in self._variants:
                raise SchemaError(f'the {tag!r} text variant clashes with the element variant with the same name')
            case _:
                raise SchemaError(f'the text variant must be a (tag, type) pair, not {text!r}')
        self.fallback = fallback

    def __repr__(self) -> str:
        return f'{self.__class__.__name__}({self._variants!r}, fallback={self.fallback!r}, text={self.text!r})'

    def __getitem__(self, name: str) -> 'Descriptor | None':
        return self._variants[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._variants)

    def __len__(self) -> int:
        return len(self._variants)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, VariantMap):
            return list(self._variants.items()) == list(other._variants.items()) and (self.fallback, self.text) == (other.fallback, other.text)
        return NotImplemented

    def __hash__(self) -> int:
        return hash((tuple(self._variants), self.fallback, self.text))

    @property
    def text_tag(self) -> str | None:
        return self.text[0] if self.text is not None else None

    def parse_text(self, key: str, raw_text: str) -> Variant:
        """Build the text variant out of XML text"""
        assert self.text is not None  # noqa: S101 (used by type checkers)
        tag, shape = self.text
        return Variant(tag, shape.parse(key, raw_text))

    def format_text(self, key: str, variant: Variant) -> str:
        """Convert the payload of the text variant into XML text"""
        assert self.text is not None  # noqa: S101 (used by type checkers)
        return self.text[1].format(key, variant.payload)


@dataclass(frozen=True, slots=True)
class TaggedEnum(Shape):
    variants: VariantMap


@dataclass(frozen=True, slots=True)
class UntaggedEnum(Shape):
    variants: VariantMap


@dataclass(frozen=True, slots=True)
class Opaque(Shape):
    pass


@dataclass(frozen=True, kw_only=True)
class FieldBinding:
    """The rule that maps one field of a value to an XML construct"""

    key: str
    role: Role
    shape: Shape
    name: str | None = None
    cardinality: Cardinality = Cardinality.Scalar
    default: DefaultProvider | None = None
    size_hint: int | str | None = None
    skip_serializing: bool = False

    def __post_init__(self) -> None:  # noqa: C901
        match self.role:
            case Role.Attribute | Role.Child | Role.Flag if not self.name:
                raise SchemaError(f'the {self.key!r} {self.role.value} binding must have a name')
            case Role.Text | Role.UntaggedVariant | Role.Flatten if self.name is not None:
                raise SchemaError(f"the {self.key!r} {self.role.value} binding doesn't take a name")
        match self.role:
            case Role.Attribute | Role.Text:
                if not isinstance(self.shape, Primitive):
                    raise SchemaError(f'the {self.key!r} {self.role.value} binding must have a primitive shape')
                if self.cardinality is Cardinality.Repeated:
                    raise SchemaError(f'the {self.key!r} {self.role.value} binding cannot be repeated')
            case Role.Flag:
                if not (isinstance(self.shape, Primitive) and self.shape.type is bool) or self.cardinality is not Cardinality.Scalar:
                    raise SchemaError(f'the {self.key!r} flag binding must be a scalar bool')
            case Role.Child:
                if isinstance(self.shape, UntaggedEnum):
                    raise SchemaError(f'the {self.key!r} child binding cannot have an untagged enum shape, use an untagged variant binding instead')
            case Role.UntaggedVariant:
                if not isinstance(self.shape, UntaggedEnum):
                    raise SchemaError(f'the {self.key!r} untagged variant binding must have an untagged enum shape')
            case Role.Flatten:
                if not isinstance(self.shape, Nested) or self.cardinality is Cardinality.Repeated:
                    raise SchemaError(f'the {self.key!r} flatten binding must be a single or optional nested descriptor')
                if any(binding.role not in {Role.Child, Role.Flag} for binding in self.shape.descriptor.fields):
                    raise SchemaError(f'the descriptor of the {self.key!r} flatten binding can only have child and flag bindings')
        if self.size_hint is not None:
            if self.cardinality is not Cardinality.Repeated:
                raise SchemaError(f'the {self.key!r} binding is not repeated and cannot have a size hint')
            if isinstance(self.size_hint, int) and self.size_hint < 0:
                raise SchemaError(f'the size hint of the {self.key!r} binding must not be negative')
        if self.default is not None:
            if not callable(self.default):
                raise SchemaError(f'the default of the {self.key!r} binding must be a zero-argument callable')
            # default elision needs values that compare equal to a freshly produced default
            if not self.default() == self.default():  # noqa: PLR0124, SIM201
                raise SchemaError(f"the default of the {self.key!r} binding produces values that don't compare equal, so they cannot be elided when encoding")

    def __repr__(self) -> str:
        name = f', name={self.name!r}' if self.name is not None else ''
        return f'{self.__class__.__name__}({self.key!r}, {self.role!r}{name}, {self.cardinality!r}, {self.shape!r})'

    @property
    def xml_name(self) -> str:
        """The name used to refer to this binding in messages"""
        return self.name if self.name is not None else self.key

    def is_default(self, value: object) -> bool:
        return self.default is not None and value == self.default()

    def parse(self, raw_text: str) -> object:
        """Convert XML text into the primitive value of this binding"""
        assert isinstance(self.shape, Primitive)  # noqa: S101 (used by type checkers)
        return self.shape.parse(self.key, raw_text)

    def format(self, value: object) -> str:
        """Convert the primitive value of this binding into XML text"""
        assert isinstance(self.shape, Primitive)  # noqa: S101 (used by type checkers)
        return self.shape.format(self.key, value)


@dataclass(frozen=True, init=False, eq=False)
class Descriptor:
    """
    The schema of a bound type.

    A descriptor is an ordered list of field bindings together with the
    factory that builds values out of the decoded fields. The factory is
    called with the field keys as keyword arguments; it defaults to Record.
    """

    fields: tuple[FieldBinding, ...]
    factory: Callable[..., object]
    root: str | None
    deny_unknown: bool

    attributes: tuple[FieldBinding, ...] = field(repr=False)
    attribute_map: Mapping[str, FieldBinding] = field(repr=False)
    text: FieldBinding | None = field(repr=False)
    content: tuple[FieldBinding, ...] = field(repr=False)
    element_map: Mapping[str, FieldBinding] = field(repr=False)
    flatten_map: Mapping[str, FieldBinding] = field(repr=False)
    untagged: tuple[FieldBinding, ...] = field(repr=False)
    text_variant: FieldBinding | None = field(repr=False)

    def __init__(self, fields: Iterable[FieldBinding], /, *, factory: Callable[..., object] = Record, root: str | None = None, deny_unknown: bool = False) -> None:  # noqa: C901
        fields = tuple(fields)

        keys: set[str] = set()
        attribute_map: dict[str, FieldBinding] = {}
        element_map: dict[str, FieldBinding] = {}
        text_binding: FieldBinding | None = None

        for binding in fields:
            if not isinstance(binding, FieldBinding):
                raise SchemaError(f'descriptor fields must be FieldBinding objects, not {binding!r}')
            if binding.key in keys:
                raise SchemaError(f'duplicate field key {binding.key!r}')
            keys.add(binding.key)
            match binding.role:
                case Role.Attribute:
                    assert binding.name is not None  # noqa: S101 (used by type checkers)
                    if binding.name in attribute_map:
                        raise SchemaError(f'duplicate attribute name {binding.name!r}')
                    attribute_map[binding.name] = binding
                case Role.Child | Role.Flag:
                    assert binding.name is not None  # noqa: S101 (used by type checkers)
                    if binding.name in element_map:
                        raise SchemaError(f'duplicate element name {binding.name!r}')
                    element_map[binding.name] = binding
                case Role.Text:
                    if text_binding is not None:
                        raise SchemaError(f'a descriptor can have only one text binding ({text_binding.key!r} and {binding.key!r})')
                    text_binding = binding

        for binding in fields:
            if isinstance(binding.size_hint, str):
                reference = next((item for item in fields if item.key == binding.size_hint), None)
                if reference is None or reference.role is not Role.Attribute:
                    raise SchemaError(f'the size hint of the {binding.key!r} binding must refer to an attribute binding, not {binding.size_hint!r}')

        # the child elements of flattened descriptors are matched as if they were our own
        flatten_map: dict[str, FieldBinding] = {}
        for binding in fields:
            if binding.role is Role.Flatten:
                assert isinstance(binding.shape, Nested)  # noqa: S101 (used by type checkers)
                for name in binding.shape.descriptor.element_map:
                    if name in element_map or name in flatten_map:
                        raise SchemaError(f'duplicate element name {name!r} in the {binding.key!r} flatten binding')
                    flatten_map[name] = binding

        untagged = tuple(binding for binding in fields if binding.role is Role.UntaggedVariant)
        text_variant = next((binding for binding in untagged if binding.shape.variants.text is not None), None)  # type: ignore[attr-defined]
        if text_variant is not None and text_binding is not None:
            raise SchemaError(f'the text of the element cannot be bound to both the {text_binding.key!r} text binding and the text variant of {text_variant.key!r}')

        object.__setattr__(self, 'fields', fields)
        object.__setattr__(self, 'factory', factory)
        object.__setattr__(self, 'root', root)
        object.__setattr__(self, 'deny_unknown', deny_unknown)
        object.__setattr__(self, 'attributes', tuple(binding for binding in fields if binding.role is Role.Attribute))
        object.__setattr__(self, 'attribute_map', MappingProxyType(attribute_map))
        object.__setattr__(self, 'text', text_binding)
        object.__setattr__(self, 'content', tuple(binding for binding in fields if binding.role in {Role.Child, Role.Flag, Role.UntaggedVariant, Role.Flatten}))
        object.__setattr__(self, 'element_map', MappingProxyType(element_map))
        object.__setattr__(self, 'flatten_map', MappingProxyType(flatten_map))
        object.__setattr__(self, 'untagged', untagged)
        object.__setattr__(self, 'text_variant', text_variant)

    def match_untagged(self, name: str) -> tuple[FieldBinding, 'Descriptor | None'] | None:
        """Find the first untagged variant binding with a variant named name"""
        for binding in self.untagged:
            assert isinstance(binding.shape, UntaggedEnum)  # noqa: S101 (used by type checkers)
            variants = binding.shape.variants
            if name in variants:
                return binding, variants[name]
        return None

    def fallback_untagged(self) -> FieldBinding | None:
        """The first untagged variant binding that keeps unknown elements, if any"""
        for binding in self.untagged:
            assert isinstance(binding.shape, UntaggedEnum)  # noqa: S101 (used by type checkers)
            if binding.shape.variants.fallback:
                return binding
        return None


# Helpers to create field bindings

def _default_provider(default: object) -> DefaultProvider | None:
    if default is None or callable(default):
        return default  # type: ignore[return-value]
    # every decoded value gets its own copy, so mutating one doesn't change the others
    return lambda: deepcopy(default)


def _shape(target: type | Shape | Descriptor, adapter: DataAdapterType | None = None) -> Shape:
    match target:
        case Shape():
            if adapter is not None:
                raise SchemaError('an adapter can only be specified for primitive types')
            return target
        case Descriptor():
            if adapter is not None:
                raise SchemaError('an adapter can only be specified for primitive types')
            return Nested(target)
        case type():
            return Primitive(target, adapter)
        case _:
            raise SchemaError(f'a binding target must be a type, a shape or a descriptor, not {target!r}')


def _cardinality(*, optional: bool) -> Cardinality:
    return Cardinality.Optional if optional else Cardinality.Scalar


def attribute(key: str, data_type: type, /, *, name: str | None = None, adapter: DataAdapterType | None = None, default: object = None, optional: bool = False, skip_serializing: bool = False) -> FieldBinding:
    return FieldBinding(key=key, role=Role.Attribute, name=name or key, shape=Primitive(data_type, adapter), cardinality=_cardinality(optional=optional), default=_default_provider(default), skip_serializing=skip_serializing)


def text(key: str, data_type: type = str, /, *, adapter: DataAdapterType | None = None, default: object = None, optional: bool = False) -> FieldBinding:
    return FieldBinding(key=key, role=Role.Text, shape=Primitive(data_type, adapter), cardinality=_cardinality(optional=optional), default=_default_provider(default))


def child(key: str, target: type | Shape | Descriptor, /, *, name: str | None = None, adapter: DataAdapterType | None = None, default: object = None, optional: bool = False, skip_serializing: bool = False) -> FieldBinding:
    return FieldBinding(key=key, role=Role.Child, name=name or key, shape=_shape(target, adapter), cardinality=_cardinality(optional=optional), default=_default_provider(default), skip_serializing=skip_serializing)


def children(key: str, target: type | Shape | Descriptor, /, *, name: str | None = None, adapter: DataAdapterType | None = None, default: object = None, size_hint: int | str | None = None, skip_serializing: bool = False) -> FieldBinding:
    return FieldBinding(key=key, role=Role.Child, name=name or key, shape=_shape(target, adapter), cardinality=Cardinality.Repeated, default=_default_provider(default), size_hint=size_hint, skip_serializing=skip_serializing)


def flag(key: str, /, *, name: str | None = None, skip_serializing: bool = False) -> FieldBinding:
    return FieldBinding(key=key, role=Role.Flag, name=name or key, shape=Primitive(bool), skip_serializing=skip_serializing)


def flatten(key: str, descriptor: Descriptor, /, *, default: object = None, optional: bool = False) -> FieldBinding:
    return FieldBinding(key=key, role=Role.Flatten, shape=Nested(descriptor), cardinality=_cardinality(optional=optional), default=_default_provider(default))


def _variant_map(variants: VariantMap | Mapping[str, Descriptor | None], fallback: bool, text: tuple[str, type | Primitive] | None) -> VariantMap:  # noqa: FBT001
    if isinstance(variants, VariantMap):
        if (fallback and not variants.fallback) or text is not None:
            return VariantMap(variants, fallback=fallback or variants.fallback, text=text or variants.text)
        return variants
    return VariantMap(variants, fallback=fallback, text=text)


def tagged(key: str, variants: VariantMap | Mapping[str, Descriptor | None], /, *, name: str | None = None, default: object = None, optional: bool = False, fallback: bool = False, text: tuple[str, type | Primitive] | None = None) -> FieldBinding:
    return FieldBinding(key=key, role=Role.Child, name=name or key, shape=TaggedEnum(_variant_map(variants, fallback, text)), cardinality=_cardinality(optional=optional), default=_default_provider(default))


def untagged(key: str, variants: VariantMap | Mapping[str, Descriptor | None], /, *, cardinality: Cardinality = Cardinality.Scalar, default: object = None, fallback: bool = False, text: tuple[str, type | Primitive] | None = None) -> FieldBinding:
    return FieldBinding(key=key, role=Role.UntaggedVariant, shape=UntaggedEnum(_variant_map(variants, fallback, text)), cardinality=cardinality, default=_default_provider(default))


def unparsed(key: str, /, *, name: str | None = None, optional: bool = False, repeated: bool = False) -> FieldBinding:
    cardinality = Cardinality.Repeated if repeated else _cardinality(optional=optional)
    return FieldBinding(key=key, role=Role.Child, name=name or key, shape=Opaque(), cardinality=cardinality)
