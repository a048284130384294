# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

import sys
from dataclasses import dataclass

__all__ = 'DEFAULT_MAX_DEPTH', 'LIBXML2_MAX_DEPTH', 'DecoderOptions', 'EncoderOptions', 'max_depth_limit'


DEFAULT_MAX_DEPTH = 128

# libxml2 rejects documents nested deeper than this unless huge_tree is enabled
LIBXML2_MAX_DEPTH = 256

# the decoder uses this many Python frames for every nested element it decodes
FRAMES_PER_LEVEL = 3

# frames left for the caller and for the value conversions at the deepest level
RESERVED_FRAMES = 200


def max_depth_limit() -> int:
    """The largest max_depth the decoder can honor under the current recursion limit"""
    return max((sys.getrecursionlimit() - RESERVED_FRAMES) // FRAMES_PER_LEVEL, 1)


@dataclass(frozen=True, kw_only=True)
class DecoderOptions:
    """
    Settings that control how documents are tokenized and decoded.

    The decoder recurses once for every nested element, so max_depth cannot
    exceed max_depth_limit(), which follows the interpreter's recursion limit
    at the time the options are created. Raise the recursion limit first in
    order to decode documents that are nested deeper than that.
    """

    max_depth: int = DEFAULT_MAX_DEPTH
    ignore_blank_text: bool = False

    def __post_init__(self) -> None:
        if self.max_depth < 1:
            raise ValueError('max_depth must be a positive integer')
        if self.max_depth > (limit := max_depth_limit()):
            raise ValueError(f'max_depth cannot be larger than {limit} under the current recursion limit of {sys.getrecursionlimit()}')

    @property
    def huge_tree(self) -> bool:
        return self.max_depth > LIBXML2_MAX_DEPTH


@dataclass(frozen=True, kw_only=True)
class EncoderOptions:
    """Settings that control how encoded documents are serialized"""

    xml_declaration: bool = False
    standalone: bool | None = None
    encoding: str = 'UTF-8'
    pretty_print: bool = False

    def __post_init__(self) -> None:
        if self.standalone is not None and not self.xml_declaration:
            raise ValueError('standalone can only be specified together with the XML declaration')
        if self.encoding.lower() == 'unicode':
            raise ValueError('documents are always serialized to bytes, use a byte encoding')
