"""The shell's environment: an ordered list of ``KEY=VALUE`` (or bare ``KEY``) entries."""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from string import ascii_letters, digits

_NAME_START = frozenset(ascii_letters + "_")
_NAME_CHARS = frozenset(ascii_letters + digits + "_")


class InvalidIdentifierError(ValueError):
    """Raised when a variable name is not a valid shell identifier."""

    def __init__(self, var: str) -> None:
        super().__init__(f"`{var}': not a valid identifier")
        self.var = var


def is_valid_env_name(name: str) -> bool:
    """Return True if *name* starts with a letter or '_' and holds only alphanumerics or '_'."""
    if not name or name[0] not in _NAME_START:
        return False
    return all(ch in _NAME_CHARS for ch in name[1:])


def _entry_key(entry: str) -> str:
    return entry.split("=", 1)[0]


class Environment:
    """Ordered environment entries, kept as the strings a child process receives."""

    def __init__(self, entries: Iterable[str] = ()) -> None:
        self._entries: list[str] = list(entries)

    def get(self, key: str) -> str | None:
        """Return the value of the first entry ``key=...``, or None if there is none."""
        for entry in self._entries:
            if entry.startswith(key) and entry[len(key):len(key) + 1] == "=":
                return entry[len(key) + 1:]
        return None

    def set(self, var: str) -> None:
        """Add or update an entry from ``KEY=VALUE`` or ``KEY``.

        An existing entry is replaced only when both it and *var* carry a value;
        a bare ``KEY`` never clears an existing value.
        """
        key, has_value, _ = var.partition("=")
        if not is_valid_env_name(key):
            raise InvalidIdentifierError(var)
        key_len = len(key)
        for index, entry in enumerate(self._entries):
            if entry.startswith(key) and entry[key_len:key_len + 1] in ("=", ""):
                if has_value and entry[key_len:key_len + 1] == "=":
                    self._entries[index] = var
                return
        self._entries.append(var)

    def unset(self, names: Iterable[str]) -> None:
        """Remove every entry whose key equals one of *names*."""
        doomed = set(names)
        if not doomed:
            return
        self._entries = [e for e in self._entries if _entry_key(e) not in doomed]

    def sorted_entries(self) -> list[str]:
        """Return the entries in ascending string order."""
        return sorted(self._entries)

    def copy(self) -> Environment:
        """Return an independent copy."""
        return Environment(self._entries)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._entries))

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"Environment({self._entries!r})"