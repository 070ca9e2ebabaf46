import posixpath
from functools import total_ordering
from typing import List, Union


def clean_key_path(raw: str) -> str:
    """Normalises a key string: leading slash, no empty/dot segments, no trailing slash."""
    if not raw:
        return "/"
    if not raw.startswith("/"):
        raw = "/" + raw
    cleaned = posixpath.normpath(raw)
    # normpath keeps a leading '//' as POSIX allows it to mean something special
    if cleaned.startswith("//"):
        cleaned = "/" + cleaned.lstrip("/")
    return cleaned


@total_ordering
class Key:
    """
    Hierarchical datastore key such as ``/Comedy/MontyPython/Actor:JohnCleese``.

    Keys compare and hash by their string form. The last namespace may carry a
    ``type:value`` pair, exposed via :attr:`type` and :attr:`name`.
    """

    __slots__ = ("_value",)

    def __init__(self, value: Union[str, "Key"] = "/"):
        if isinstance(value, Key):
            self._value = value._value
        else:
            self._value = clean_key_path(value)

    @classmethod
    def raw(cls, value: str) -> "Key":
        """Builds a key without cleaning. The caller guarantees the form."""
        key = cls.__new__(cls)
        key._value = value
        return key

    @classmethod
    def with_namespaces(cls, namespaces: List[str]) -> "Key":
        return cls("/".join(namespaces))

    def __str__(self) -> str:
        return self._value

    def __repr__(self) -> str:
        return f"Key({self._value!r})"

    def __bytes__(self) -> bytes:
        return self._value.encode("utf-8")

    def __hash__(self) -> int:
        return hash(self._value)

    def __eq__(self, other) -> bool:
        if isinstance(other, Key):
            return self._value == other._value
        return NotImplemented

    def __lt__(self, other: "Key") -> bool:
        if not isinstance(other, Key):
            return NotImplemented
        return self._value < other._value

    def namespaces(self) -> List[str]:
        return [part for part in self._value.split("/") if part]

    def base_namespace(self) -> str:
        parts = self.namespaces()
        return parts[-1] if parts else ""

    @property
    def type(self) -> str:
        base = self.base_namespace()
        return base.rsplit(":", 1)[0] if ":" in base else ""

    @property
    def name(self) -> str:
        return self.base_namespace().rsplit(":", 1)[-1]

    def instance(self, value: str) -> "Key":
        return Key(f"{self._value}:{value}")

    def parent(self) -> "Key":
        parts = self.namespaces()
        if len(parts) <= 1:
            return Key("/")
        return Key.with_namespaces(parts[:-1])

    def child(self, other: Union[str, "Key"]) -> "Key":
        other_value = str(other) if isinstance(other, Key) else other
        if self._value == "/":
            return Key(other_value)
        if isinstance(other, Key) and other_value == "/":
            return Key(self)
        return Key(f"{self._value}/{other_value}")

    def is_ancestor_of(self, other: "Key") -> bool:
        if self._value == "/":
            return str(other) != "/"
        return str(other).startswith(self._value + "/")

    def is_descendant_of(self, other: "Key") -> bool:
        return other.is_ancestor_of(self)

    def is_top_level(self) -> bool:
        return len(self.namespaces()) == 1

    def reverse(self) -> "Key":
        return Key.with_namespaces(list(reversed(self.namespaces())))
