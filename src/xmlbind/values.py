# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum

from .events import Attributes, Event

__all__ = 'Marker', 'Record', 'Unparsed', 'Variant', 'get_field'


class Marker(Enum):
    Missing = 'Value is not provided'

    def __repr__(self) -> str:
        return f'{self.__class__.__qualname__}.{self.name}'


class Record(dict[str, object]):
    """
    The default value type for decoded elements.

    A dict that maps the field keys of a descriptor to their values, which
    also gives attribute access to the fields (record.age == record['age']).
    """

    __slots__ = ()

    def __repr__(self) -> str:
        return f'{self.__class__.__name__}({", ".join(f"{key!s}={value!r}" for key, value in self.items())})'

    def __getattr__(self, name: str) -> object:
        try:
            return self[name]
        except KeyError:
            raise AttributeError(f'{self.__class__.__name__!r} object has no field {name!r}') from None


@dataclass(frozen=True, slots=True)
class Variant:
    """An enum value: the tag of the selected variant and its payload"""

    tag: str
    payload: object = None


@dataclass(frozen=True, slots=True)
class Unparsed:
    """
    An element that is kept without being interpreted.

    It holds the attributes of the element and the events that make up its
    content, so that it can be written back exactly as it was read.
    """

    attributes: Attributes = ()
    events: tuple[Event, ...] = ()


def get_field(value: object, key: str) -> object:
    """Get the value of a field from a mapping or from an object attribute"""
    if isinstance(value, Mapping):
        return value.get(key, Marker.Missing)
    return getattr(value, key, Marker.Missing)
