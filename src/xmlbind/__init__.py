# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

from .__info__ import __version__
from .document import decode, decode_document, decode_events, encode_document, encode_events
from .exceptions import (
    DepthExceeded,
    MalformedDocument,
    MissingRequiredValue,
    RootElementNotFound,
    SchemaError,
    UnknownField,
    UnresolvedVariant,
    ValueCoercionError,
    XMLBindError,
)
from .options import DecoderOptions, EncoderOptions, max_depth_limit
from .schema import (
    Cardinality,
    Descriptor,
    FieldBinding,
    Nested,
    Opaque,
    Primitive,
    Role,
    TaggedEnum,
    UntaggedEnum,
    VariantMap,
    attribute,
    child,
    children,
    flag,
    flatten,
    tagged,
    text,
    unparsed,
    untagged,
)
from .values import Record, Unparsed, Variant

__all__ = (  # noqa: RUF022
    '__version__',

    'decode_document',
    'encode_document',
    'decode_events',
    'encode_events',
    'decode',

    'DecoderOptions',
    'EncoderOptions',
    'max_depth_limit',

    'Descriptor',
    'FieldBinding',
    'Role',
    'Cardinality',
    'Primitive',
    'Nested',
    'VariantMap',
    'TaggedEnum',
    'UntaggedEnum',
    'Opaque',
    'attribute',
    'text',
    'child',
    'children',
    'flag',
    'flatten',
    'tagged',
    'untagged',
    'unparsed',

    'Record',
    'Variant',
    'Unparsed',

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
