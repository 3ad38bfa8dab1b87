"""
Client settings.

A :class:`Settings` object starts from the values of
:mod:`tinyhttp.settings.default_settings` and is overlaid with user values.
Every value remembers the priority it was set with, so keyword options given
to :class:`~tinyhttp.HTTPClient` win over a settings dict regardless of the
order they are applied in.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping, MutableMapping
from typing import TYPE_CHECKING, Any, Union

from tinyhttp.exceptions import NotConfigured
from tinyhttp.settings import default_settings

if TYPE_CHECKING:
    _SettingsInputT = Union[Mapping[str, Any], "BaseSettings", None]


SETTINGS_PRIORITIES: dict[str, int] = {
    "default": 0,
    "project": 20,
    "client": 30,
}

# keyword options accepted by HTTPClient and the settings they map to
OPTION_SETTINGS: dict[str, str] = {
    "agent": "USER_AGENT",
    "default_headers": "DEFAULT_REQUEST_HEADERS",
    "http_proxy": "HTTP_PROXY",
    "no_proxy": "NO_PROXY",
    "max_redirect": "REDIRECT_MAX_TIMES",
    "max_size": "DOWNLOAD_MAXSIZE",
    "warn_size": "DOWNLOAD_WARNSIZE",
    "timeout": "DOWNLOAD_TIMEOUT",
    "verify_ssl": "TLS_VERIFY",
    "ssl_options": "TLS_OPTIONS",
    "local_address": "DOWNLOAD_BINDADDRESS",
}

_COUNT_SETTINGS = (
    "REDIRECT_MAX_TIMES",
    "DOWNLOAD_MAXSIZE",
    "DOWNLOAD_WARNSIZE",
    "MAX_HEADER_LINES",
    "MAX_LINE_SIZE",
    "READ_BUFFER_SIZE",
)

_TRUE_STRINGS = {"1", "true"}
_FALSE_STRINGS = {"0", "false"}


def get_settings_priority(priority: int | str) -> int:
    """Return the numerical value of a named priority, or ``priority``
    itself when it is already a number.

    >>> get_settings_priority("client")
    30
    >>> get_settings_priority(5)
    5
    """
    if isinstance(priority, str):
        return SETTINGS_PRIORITIES[priority]
    return priority


class SettingsAttribute:
    """A setting value and the priority it was stored with"""

    def __init__(self, value: Any, priority: int):
        self.value: Any = value
        self.priority: int = priority

    def set(self, value: Any, priority: int) -> None:
        """Replace the value unless ``priority`` is lower than the current one"""
        if priority >= self.priority:
            self.value = value
            self.priority = priority

    def __repr__(self) -> str:
        return f"<SettingsAttribute value={self.value!r} priority={self.priority}>"


class BaseSettings(MutableMapping[str, Any]):
    """
    Dictionary-like storage of settings with per-key priorities.

    Reading a missing key returns ``None``. Once :meth:`freeze` is called
    any modification raises :exc:`TypeError`.
    """

    def __init__(self, values: _SettingsInputT = None, priority: int | str = "project"):
        self.frozen: bool = False
        self.attributes: dict[str, SettingsAttribute] = {}
        if values:
            self.update(values, priority)

    def __getitem__(self, name: str) -> Any:
        attribute = self.attributes.get(name)
        return None if attribute is None else attribute.value

    def __contains__(self, name: Any) -> bool:
        return name in self.attributes

    def __iter__(self) -> Iterator[str]:
        return iter(self.attributes)

    def __len__(self) -> int:
        return len(self.attributes)

    def __setitem__(self, name: str, value: Any) -> None:
        self.set(name, value)

    def __delitem__(self, name: str) -> None:
        self._assert_mutability()
        del self.attributes[name]

    def get(self, name: str, default: Any = None) -> Any:
        """The value of ``name``, or ``default`` when it is missing or ``None``"""
        value = self[name]
        return default if value is None else value

    def getbool(self, name: str, default: bool = False) -> bool:
        """
        Get a setting value as a boolean.

        Accepts booleans, ``0``/``1`` and the strings ``'0'``, ``'1'``,
        ``'true'`` and ``'false'`` in any case.
        """
        value = self.get(name, default)
        if isinstance(value, (bool, int)):
            return bool(value)
        text = str(value).strip().lower()
        if text in _TRUE_STRINGS:
            return True
        if text in _FALSE_STRINGS:
            return False
        raise ValueError(
            f"Supported values for boolean settings are 0/1, True/False, "
            f"'0'/'1' and 'true'/'false', got {name}={value!r}"
        )

    def getint(self, name: str, default: int = 0) -> int:
        return int(self.get(name, default))

    def getfloat(self, name: str, default: float = 0.0) -> float:
        return float(self.get(name, default))

    def getdict(self, name: str, default: dict[Any, Any] | None = None) -> dict[Any, Any]:
        """A copy of a mapping setting, so callers may modify it freely"""
        return dict(self.get(name, default or {}))

    def getpriority(self, name: str) -> int | None:
        """The priority ``name`` was stored with, ``None`` if it is missing"""
        attribute = self.attributes.get(name)
        return None if attribute is None else attribute.priority

    def set(self, name: str, value: Any, priority: int | str = "project") -> None:
        """Store ``value`` unless ``name`` already holds a higher priority
        value."""
        self._assert_mutability()
        priority = get_settings_priority(priority)
        if name in self.attributes:
            self.attributes[name].set(value, priority)
        else:
            self.attributes[name] = SettingsAttribute(value, priority)

    def update(  # type: ignore[override]
        self, values: _SettingsInputT, priority: int | str = "project"
    ) -> None:
        """Store every item of ``values`` with ``priority``.

        When ``values`` is a :class:`BaseSettings`, its own per-key
        priorities are kept and ``priority`` is ignored.
        """
        self._assert_mutability()
        if values is None:
            return
        if isinstance(values, BaseSettings):
            for name, attribute in values.attributes.items():
                self.set(name, attribute.value, attribute.priority)
        else:
            for name, value in values.items():
                self.set(name, value, priority)

    def freeze(self) -> None:
        self.frozen = True

    def _assert_mutability(self) -> None:
        if self.frozen:
            raise TypeError("Trying to modify an immutable Settings object")

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {dict(self)!r}>"


class Settings(BaseSettings):
    """
    The settings of one client: the defaults, stored with the ``default``
    priority, overlaid with ``values``.
    """

    def __init__(self, values: _SettingsInputT = None, priority: int | str = "project"):
        super().__init__()
        for name, value in iter_default_settings():
            # mutable defaults must not be shared between clients
            self.set(name, dict(value) if isinstance(value, dict) else value, "default")
        self.update(values, priority)

    def apply_options(self, options: Mapping[str, Any]) -> None:
        """Store :class:`~tinyhttp.HTTPClient` keyword options with the
        ``client`` priority. Options given as ``None`` are ignored."""
        unknown = set(options) - set(OPTION_SETTINGS)
        if unknown:
            raise TypeError(
                f"Unknown HTTPClient option(s): {', '.join(sorted(unknown))}"
            )
        for option, value in options.items():
            if value is not None:
                self.set(OPTION_SETTINGS[option], value, "client")

    def validate(self) -> None:
        """Check the values the protocol core reads, raising
        :exc:`~tinyhttp.exceptions.NotConfigured` for unusable ones."""
        for name in _COUNT_SETTINGS:
            try:
                value = self.getint(name)
            except (TypeError, ValueError):
                value = -1
            if value < 0:
                raise NotConfigured(
                    f"{name} must be a non-negative integer, got {self[name]!r}"
                )
        try:
            timeout = self.getfloat("DOWNLOAD_TIMEOUT")
        except (TypeError, ValueError):
            timeout = -1.0
        if timeout < 0:
            raise NotConfigured(
                "DOWNLOAD_TIMEOUT must be a non-negative number, "
                f"got {self['DOWNLOAD_TIMEOUT']!r}"
            )
        try:
            self.getbool("TLS_VERIFY")
        except ValueError as e:
            raise NotConfigured(str(e)) from e
        for name in ("DEFAULT_REQUEST_HEADERS", "TLS_OPTIONS"):
            if not isinstance(self.get(name, {}), Mapping):
                raise NotConfigured(f"{name} must be a mapping, got {self[name]!r}")


def iter_default_settings() -> Iterable[tuple[str, Any]]:
    """Return the default settings as an iterator of (name, value) tuples"""
    for name in dir(default_settings):
        if name.isupper():
            yield name, getattr(default_settings, name)


def overridden_settings(
    settings: Mapping[str, Any],
) -> Iterable[tuple[str, Any]]:
    """Return an iterable of the settings that have been overridden"""
    for name, defvalue in iter_default_settings():
        value = settings[name]
        if not isinstance(defvalue, dict) and value != defvalue:
            yield name, value
