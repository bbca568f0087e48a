"""Label canonicalization and label set values."""
from typing import Dict, Iterable, Iterator, Mapping, Optional, Tuple
import re

LABEL_NAME_PATTERN = re.compile(r'^[a-zA-Z_][a-zA-Z0-9_]*$')
_SPECIAL_CHARS = re.compile(r'([\\,=])')


def _escape(text: str) -> str:
    """Backslash-escape the identifier separators."""
    return _SPECIAL_CHARS.sub(r'\\\1', text)


def _join(items: Iterable[Tuple[str, str]]) -> str:
    return ",".join(f"{_escape(k)}={_escape(v)}" for k, v in items)


def label_key(labels: Mapping[str, str]) -> str:
    """Generate a stable key from sorted labels."""
    return _join(sorted(labels.items()))


def validate_label_names(labels: Mapping[str, str]) -> bool:
    """
    Validate label names are Prometheus-safe.

    Label names must match [a-zA-Z_][a-zA-Z0-9_]*
    """
    for name in labels.keys():
        if not isinstance(name, str) or not LABEL_NAME_PATTERN.match(name):
            return False

    return True


class LabelSet:
    """Canonicalized labels with a unique string identifier.

    Two label sets built from the same key/value pairs are equal and hash the
    same, whatever order the pairs were supplied in. Separators inside keys
    and values are backslash-escaped in the identifier, so distinct label
    sets never share one.
    """

    __slots__ = ("_items", "_identifier")

    def __init__(self, items: Tuple[Tuple[str, str], ...]):
        self._items = items
        self._identifier = _join(items)

    @property
    def identifier(self) -> str:
        return self._identifier

    @property
    def labels(self) -> Dict[str, str]:
        """A copy of the original labels."""
        return dict(self._items)

    def keys(self) -> Iterator[str]:
        return (k for k, _ in self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __bool__(self) -> bool:
        return bool(self._items)

    def __eq__(self, other) -> bool:
        if not isinstance(other, LabelSet):
            return NotImplemented
        return self._items == other._items

    def __hash__(self) -> int:
        return hash(self._items)

    def __setattr__(self, name, value):
        if hasattr(self, "_identifier"):
            raise AttributeError("LabelSet is immutable")
        object.__setattr__(self, name, value)

    def __repr__(self) -> str:
        return f"LabelSet({self._identifier!r})"


EMPTY_LABEL_SET = LabelSet(())


def canonicalize(labels: Optional[Mapping[str, str]] = None) -> LabelSet:
    """
    Build the canonical LabelSet for a labels mapping.

    Args:
        labels: key-value pairs passed by the user

    Returns:
        LabelSet whose identifier depends only on the mapping's content

    Raises:
        TypeError: a key or value is not a string
        ValueError: a label name is not Prometheus-safe
    """
    if not labels:
        return EMPTY_LABEL_SET

    for name, value in labels.items():
        if not isinstance(name, str) or not isinstance(value, str):
            raise TypeError(
                f"Label names and values must be strings, got {name!r}={value!r}"
            )

    if not validate_label_names(labels):
        invalid = [n for n in labels if not LABEL_NAME_PATTERN.match(n)]
        raise ValueError(f"Invalid label names: {invalid}")

    return LabelSet(tuple(sorted(labels.items())))
