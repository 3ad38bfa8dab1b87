from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, AnyStr, Union

from tinyhttp.utils.python import is_listlike, to_unicode

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

    # typing.Self requires Python 3.11
    from typing_extensions import Self


_RawValueT = Union[bytes, str, int]


class Headers(dict):
    """Case insensitive, multi-valued http headers dictionary.

    Names are stored lower-cased and every name maps to the ordered list of
    its values. ``h[name]`` and :meth:`get` return the last value,
    :meth:`getlist` returns all of them.
    """

    def __init__(
        self,
        seq: Mapping[AnyStr, Any] | Iterable[tuple[AnyStr, Any]] | None = None,
        encoding: str = "latin-1",
    ):
        super().__init__()
        self.encoding: str = encoding
        if seq:
            self.update(seq)

    def update(  # type: ignore[override]
        self, seq: Mapping[AnyStr, Any] | Iterable[tuple[AnyStr, Any]]
    ) -> None:
        """Extend, rather than replace, the values of every name in ``seq``"""
        seq = seq.items() if isinstance(seq, Mapping) else seq
        for k, v in seq:
            self.appendlist(k, v)

    def normkey(self, key: AnyStr) -> str:
        """Normalize key to a lower-cased str"""
        return to_unicode(key, encoding=self.encoding).lower()

    def normvalue(self, value: _RawValueT | Iterable[_RawValueT] | None) -> list[str]:
        """Normalize values to a list of str"""
        _value: Iterable[_RawValueT]
        if value is None:
            _value = []
        elif is_listlike(value):
            _value = value  # type: ignore[assignment]
        else:
            _value = [value]  # type: ignore[list-item]

        return [self._tostr(x) for x in _value]

    def _tostr(self, x: _RawValueT) -> str:
        if isinstance(x, str):
            return x
        if isinstance(x, bytes):
            return x.decode(self.encoding)
        if isinstance(x, int):
            return str(x)
        raise TypeError(f"Unsupported value type: {type(x)}")

    def __getitem__(self, key: AnyStr) -> str | None:
        try:
            return dict.__getitem__(self, self.normkey(key))[-1]
        except IndexError:
            return None

    def __setitem__(self, key: AnyStr, value: Any) -> None:
        dict.__setitem__(self, self.normkey(key), self.normvalue(value))

    def __delitem__(self, key: AnyStr) -> None:
        dict.__delitem__(self, self.normkey(key))

    def __contains__(self, key: Any) -> bool:
        return dict.__contains__(self, self.normkey(key))

    def get(self, key: AnyStr, def_val: Any = None) -> str | None:  # type: ignore[override]
        try:
            return self[key]
        except KeyError:
            return None if def_val is None else self._tostr(def_val)

    def getlist(self, key: AnyStr, def_val: Any = None) -> list[str]:
        try:
            return dict.__getitem__(self, self.normkey(key))
        except KeyError:
            if def_val is not None:
                return self.normvalue(def_val)
            return []

    def setlist(self, key: AnyStr, list_: Iterable[_RawValueT]) -> None:
        self[key] = list_

    def setdefault(self, key: AnyStr, def_val: Any = None) -> list[str]:  # type: ignore[override]
        return dict.setdefault(self, self.normkey(key), self.normvalue(def_val))

    def appendlist(self, key: AnyStr, value: _RawValueT | Iterable[_RawValueT]) -> None:
        lst = self.setdefault(key)
        lst.extend(self.normvalue(value))

    def pop(self, key: AnyStr, *args: Any) -> Any:
        return dict.pop(self, self.normkey(key), *args)

    def items(self) -> Iterator[tuple[str, list[str]]]:  # type: ignore[override]
        return ((k, self.getlist(k)) for k in self.keys())

    def values(self) -> list[str | None]:  # type: ignore[override]
        return [
            self[k] for k in self.keys()  # pylint: disable=consider-using-dict-items
        ]

    def iterlines(self) -> Iterator[tuple[str, str]]:
        """Yield one ``(name, value)`` pair per stored value, in order"""
        for key, values in self.items():
            for value in values:
                yield key, value

    def merged(self, *others: Mapping[AnyStr, Any] | None) -> Self:
        """Return a copy where every name present in ``others`` replaces
        the values stored here, later mappings taking precedence."""
        result = self.copy()
        for other in others:
            if not other:
                continue
            incoming = self.__class__(other, encoding=self.encoding)
            for key, values in incoming.items():
                result.setlist(key, values)
        return result

    def to_unicode_dict(self) -> dict[str, str]:
        """Return headers as a plain dict with str values.
        Multiple values are joined with ','.
        """
        return {key: ",".join(value) for key, value in self.items()}

    def __copy__(self) -> Self:
        return self.__class__(self, encoding=self.encoding)

    copy = __copy__

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({dict(self.items())!r})"
