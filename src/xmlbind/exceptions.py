# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later


__all__ = (  # noqa: RUF022
    'XMLBindError',
    'SchemaError',
    'MalformedDocument',
    'RootElementNotFound',
    'MissingRequiredValue',
    'ValueCoercionError',
    'UnresolvedVariant',
    'UnknownField',
    'DepthExceeded',
)


class XMLBindError(Exception):
    """Base class for all the errors raised by xmlbind"""


class SchemaError(XMLBindError, TypeError):
    """Raised when a descriptor or one of its bindings is not well defined."""


class MalformedDocument(XMLBindError, ValueError):
    """Raised when the document or the event stream is not well-formed XML."""


class RootElementNotFound(XMLBindError, ValueError):
    """Raised when the document root element does not have the expected name."""

    def __init__(self, root_name: str, found: str | None = None) -> None:
        if found is None:
            super().__init__(f'Cannot find the {root_name!r} root element')
        else:
            super().__init__(f'Cannot find the {root_name!r} root element (found {found!r} instead)')
        self.root_name = root_name
        self.found = found


class MissingRequiredValue(XMLBindError, ValueError):
    def __init__(self, field: str, element: str | None = None) -> None:
        location = f' from {element!r}' if element is not None else ''
        super().__init__(f'Missing mandatory value for {field!r}{location}')
        self.field = field
        self.element = element


class ValueCoercionError(XMLBindError, ValueError):
    def __init__(self, field: str, raw_text: str, target_type: str, reason: str | None = None) -> None:
        detail = f': {reason}' if reason else ''
        super().__init__(f'Invalid value for {field!r}: cannot convert {raw_text!r} to {target_type}{detail}')
        self.field = field
        self.raw_text = raw_text
        self.target_type = target_type


class UnresolvedVariant(XMLBindError, ValueError):
    """Raised when an element matches none of the variants it can stand for."""

    def __init__(self, tag_name: str, field: str | None = None) -> None:
        location = f' for {field!r}' if field is not None else ''
        super().__init__(f'Element {tag_name!r} does not match any known variant{location}')
        self.tag_name = tag_name
        self.field = field


class UnknownField(XMLBindError, ValueError):
    """Raised for unknown attributes or children of descriptors that deny them."""

    def __init__(self, field: str, element: str) -> None:
        super().__init__(f'Unknown field {field!r} in {element!r}')
        self.field = field
        self.element = element


class DepthExceeded(XMLBindError, ValueError):
    def __init__(self, limit: int) -> None:
        super().__init__(f'The document is nested deeper than the maximum of {limit} levels')
        self.limit = limit
