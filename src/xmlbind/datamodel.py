# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

from base64 import b64decode, b64encode
from collections.abc import Callable, MutableMapping
from datetime import UTC, datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import ClassVar, Protocol, Self, cast, runtime_checkable

__all__ = (  # noqa: RUF022
    'DataConverter',
    'DataAdapter',
    'DataAdapterType',
    'AdapterRegistry',
    'Coercion',
    'resolve_adapter',

    'StringAdapter',
    'Base64BinaryAdapter',
    'HexBinaryAdapter',

    'BooleanAdapter',
    'DatetimeAdapter',
    'FloatAdapter',
    'DecimalAdapter',
    'EnumAdapter',

    'IntegerAdapter',
    'PositiveIntegerAdapter',
    'NegativeIntegerAdapter',
    'NonNegativeIntegerAdapter',
    'NonPositiveIntegerAdapter',
    'Int8Adapter',
    'Int16Adapter',
    'Int32Adapter',
    'Int64Adapter',
    'UInt8Adapter',
    'UInt16Adapter',
    'UInt32Adapter',
    'UInt64Adapter',
)


@runtime_checkable
class DataConverter(Protocol):
    """A type that knows how to convert itself to and from XML text"""

    @classmethod
    def xml_parse(cls, value: str) -> Self:
        """Create an instance out of XML text"""
        ...

    def xml_build(self: Self) -> str:
        """Return the XML text for this instance"""
        ...


@runtime_checkable
class DataAdapter[T](Protocol):
    """An external converter between values of type T and XML text"""

    @staticmethod
    def xml_parse(value: str, /) -> T:
        """Convert XML text into a value"""
        ...

    @staticmethod
    def xml_build(value: T, /) -> str:
        """Convert a value into XML text"""
        ...


type DataAdapterType[T] = type[DataAdapter[T]]


class AdapterRegistry:
    """The default adapters, looked up by type (including base classes)"""

    _adapters: ClassVar[MutableMapping[type, DataAdapterType]] = {}

    @classmethod
    def register[T](cls, data_type: type[T], adapter: DataAdapterType[T]) -> None:
        if issubclass(data_type, DataConverter):
            raise TypeError(f'{data_type.__qualname__} converts itself, adapters for it must be given explicitly to the field bindings')
        cls._adapters[data_type] = adapter

    @classmethod
    def lookup[T](cls, data_type: type[T]) -> DataAdapterType[T] | None:
        for base in data_type.__mro__:
            if base in cls._adapters:
                return cls._adapters[base]
        return None


class StringAdapter:
    @staticmethod
    def xml_parse(value: str) -> str:
        return value

    @staticmethod
    def xml_build(value: str) -> str:
        return value


class Base64BinaryAdapter:
    @staticmethod
    def xml_parse(value: str) -> bytes:
        return b64decode(''.join(value.split()), validate=True)

    @staticmethod
    def xml_build(value: bytes) -> str:
        return b64encode(value).decode('ascii')


class HexBinaryAdapter:
    @staticmethod
    def xml_parse(value: str) -> bytes:
        return bytes.fromhex(value)

    @staticmethod
    def xml_build(value: bytes) -> str:
        return value.hex()


class BooleanAdapter:
    _values: ClassVar[dict[str, bool]] = {'true': True, '1': True, 'false': False, '0': False}

    @classmethod
    def xml_parse(cls, value: str) -> bool:
        try:
            return cls._values[value.strip()]
        except KeyError:
            raise ValueError(f'Invalid boolean value: {value!r}') from None

    @staticmethod
    def xml_build(value: bool) -> str:  # noqa: FBT001
        return 'true' if value else 'false'


class DatetimeAdapter:
    """Datetimes are normalized to UTC; naive values are taken to be in UTC"""

    @staticmethod
    def _utc(value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    @classmethod
    def xml_parse(cls, value: str) -> datetime:
        return cls._utc(datetime.fromisoformat(value.strip()))

    @classmethod
    def xml_build(cls, value: datetime) -> str:
        return cls._utc(value).isoformat()


class FloatAdapter:
    @staticmethod
    def xml_parse(value: str) -> float:
        return float(value)

    @staticmethod
    def xml_build(value: float) -> str:
        return repr(float(value))  # shortest text that parses back to the same float


class DecimalAdapter:
    @staticmethod
    def xml_parse(value: str) -> Decimal:
        try:
            return Decimal(value.strip())
        except InvalidOperation:
            raise ValueError(f'Invalid decimal value: {value!r}') from None

    @staticmethod
    def xml_build(value: Decimal) -> str:
        return str(value)


class EnumAdapter[E: Enum]:
    """
    Convert Enum members to and from their value.

    Use EnumAdapter.for_type(SomeEnum) to obtain an adapter for a specific
    enum type. Members are matched against the text form of their value, so
    enums with both string and integer values are supported.
    """

    enum_type: ClassVar[type[Enum]]

    _cache: ClassVar[dict[type[Enum], type['EnumAdapter']]] = {}

    @classmethod
    def for_type(cls, enum_type: type[E]) -> type['EnumAdapter[E]']:
        adapter = cls._cache.get(enum_type)
        if adapter is None:
            adapter = cls._cache.setdefault(enum_type, type(f'{enum_type.__name__}Adapter', (cls,), {'enum_type': enum_type}))
        return cast(type[EnumAdapter[E]], adapter)

    @classmethod
    def xml_parse(cls, value: str) -> E:
        for member in cls.enum_type:
            if str(member.value) == value:
                return cast(E, member)
        raise ValueError(f'{value!r} is not a valid {cls.enum_type.__qualname__}')

    @classmethod
    def xml_build(cls, value: E) -> str:
        if not isinstance(value, cls.enum_type):
            raise ValueError(f'{value!r} is not a {cls.enum_type.__qualname__} member')
        return str(value.value)


class IntegerAdapter:
    """
    Convert integers, optionally restricted to a range.

    Subclasses declare the range either with min_value/max_value (and a name
    used in error messages) or with the width in bits of a signed or unsigned
    machine integer:

        class PercentAdapter(IntegerAdapter, min_value=0, max_value=100, name='percentage'): pass
        class UInt16Adapter(IntegerAdapter, bits=16, unsigned=True): pass
    """

    name: ClassVar[str] = 'integer'
    min_value: ClassVar[int | None] = None
    max_value: ClassVar[int | None] = None

    def __init_subclass__(cls, *, min_value: int | None = None, max_value: int | None = None, name: str | None = None, bits: int | None = None, unsigned: bool = False, **kw: object) -> None:
        super().__init_subclass__(**kw)
        if bits is not None:
            if bits <= 0:
                raise ValueError('when specified, bits must be a positive integer')
            cls.min_value = 0 if unsigned else -(1 << (bits - 1))
            cls.max_value = (1 << bits) - 1 + cls.min_value
            cls.name = f'{"unsigned" if unsigned else "signed"} {bits}-bit integer'
            return
        if min_value is not None or max_value is not None:
            cls.min_value, cls.max_value = min_value, max_value
        if name is not None:
            cls.name = name

    @classmethod
    def _check(cls, number: int) -> int:
        if (cls.min_value is not None and number < cls.min_value) or (cls.max_value is not None and number > cls.max_value):
            raise ValueError(f'{number} is out of range for {cls.name}')
        return number

    @classmethod
    def xml_parse(cls, value: str) -> int:
        return cls._check(int(value))

    @classmethod
    def xml_build(cls, value: int) -> str:
        return str(cls._check(value))


class PositiveIntegerAdapter(IntegerAdapter, min_value=1, name='positive integer'):
    pass


class NegativeIntegerAdapter(IntegerAdapter, max_value=-1, name='negative integer'):
    pass


class NonNegativeIntegerAdapter(IntegerAdapter, min_value=0, name='non-negative integer'):
    pass


class NonPositiveIntegerAdapter(IntegerAdapter, max_value=0, name='non-positive integer'):
    pass


class Int8Adapter(IntegerAdapter, bits=8):
    pass


class Int16Adapter(IntegerAdapter, bits=16):
    pass


class Int32Adapter(IntegerAdapter, bits=32):
    pass


class Int64Adapter(IntegerAdapter, bits=64):
    pass


class UInt8Adapter(IntegerAdapter, bits=8, unsigned=True):
    pass


class UInt16Adapter(IntegerAdapter, bits=16, unsigned=True):
    pass


class UInt32Adapter(IntegerAdapter, bits=32, unsigned=True):
    pass


class UInt64Adapter(IntegerAdapter, bits=64, unsigned=True):
    pass


AdapterRegistry.register(str, StringAdapter)
AdapterRegistry.register(bool, BooleanAdapter)
AdapterRegistry.register(int, IntegerAdapter)
AdapterRegistry.register(float, FloatAdapter)
AdapterRegistry.register(Decimal, DecimalAdapter)
AdapterRegistry.register(bytes, Base64BinaryAdapter)
AdapterRegistry.register(datetime, DatetimeAdapter)


def resolve_adapter[T](data_type: type[T], adapter: DataAdapterType[T] | None = None) -> DataAdapterType[T] | None:
    """Find the adapter that converts data_type, or None if the type converts itself via its constructor and str"""
    if adapter is not None:
        return adapter
    if issubclass(data_type, DataConverter):
        return cast(DataAdapterType[T], data_type)
    # enums are checked first, so that int and str based enums convert by member
    if issubclass(data_type, Enum):
        return cast(DataAdapterType[T], EnumAdapter.for_type(data_type))
    return AdapterRegistry.lookup(data_type)


class Coercion[T]:
    """The parse/build pair used to convert a scalar of a given type to and from XML text"""

    __slots__ = 'adapter', 'type', 'xml_build', 'xml_parse'

    type: type[T]
    adapter: DataAdapterType[T] | None
    xml_parse: Callable[[str], T]
    xml_build: Callable[[T], str]

    def __init__(self, data_type: type[T], /, adapter: DataAdapterType[T] | None = None) -> None:
        if not isinstance(data_type, type):
            raise TypeError(f'data type must be a type, not {data_type!r}')
        self.type = data_type
        self.adapter = adapter
        converter = resolve_adapter(data_type, adapter)
        self.xml_parse = converter.xml_parse if converter is not None else data_type
        self.xml_build = converter.xml_build if converter is not None else str

    def __repr__(self) -> str:
        return f'{self.__class__.__name__}({self.type.__qualname__}, adapter={self.adapter.__qualname__ if self.adapter else None})'

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Coercion):
            return (self.type, self.adapter) == (other.type, other.adapter)
        return NotImplemented

    def __hash__(self) -> int:
        return hash((self.type, self.adapter))

    @property
    def target_name(self) -> str:
        """The name of the target type, as used in error messages"""
        if self.adapter is not None:
            return f'{self.type.__qualname__} ({self.adapter.__qualname__})'
        return self.type.__qualname__
