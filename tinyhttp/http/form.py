"""
Encoding of form data as ``application/x-www-form-urlencoded``, used by
:meth:`tinyhttp.HTTPClient.post_form`.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Optional, Union, cast
from urllib.parse import urlencode

from tinyhttp.utils.python import is_listlike, to_bytes

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"

FormdataVType = Union[str, int, None, Iterable[Union[str, int, None]]]
FormdataKVType = tuple[str, FormdataVType]
FormdataType = Union[Mapping[str, FormdataVType], Iterable[FormdataKVType]]


def _tostr(value: Optional[Union[str, int, bytes]]) -> Union[str, bytes]:
    if value is None:
        return ""
    if isinstance(value, (str, bytes)):
        return value
    return str(value)


def www_form_urlencode(data: FormdataType, encoding: str = "utf-8") -> str:
    """Encode ``data`` as a form query string.

    Mappings are encoded in key order, sequences of pairs keep their order.
    List values produce one pair per item and ``None`` becomes an empty value.

    >>> www_form_urlencode({"b": "two words", "a": ["1", "2"]})
    'a=1&a=2&b=two+words'
    """
    if isinstance(data, Mapping):
        items: Iterable[FormdataKVType] = sorted(data.items())
    elif is_listlike(data):
        items = cast(Iterable[FormdataKVType], data)
    else:
        raise TypeError(
            f"form data must be a mapping or a sequence of pairs, got {type(data).__name__}"
        )
    values = [
        (to_bytes(_tostr(k), encoding), to_bytes(_tostr(v), encoding))
        for k, vs in items
        for v in (cast(Iterable, vs) if is_listlike(vs) else [vs])
    ]
    return urlencode(values, doseq=True)
