from __future__ import annotations

from typing import Any, Callable, Iterable, Mapping, Sequence

Path = Sequence[str]

# Upstream responses nest their payload zero, one or two levels deep under
# "data". Deepest first, so a wrapper object never shadows its payload.
ENVELOPE_PATHS: tuple[Path, ...] = (("data", "data"), ("data",), ())


def _walk(raw: Any, path: Path) -> Any:
    current = raw
    for key in path:
        if not isinstance(current, Mapping):
            return None
        current = current.get(key)
    return current


def unwrap_envelope(
    raw: Any,
    paths: Iterable[Path] = ENVELOPE_PATHS,
    *,
    accept: Callable[[Mapping[str, Any]], bool] | None = None,
) -> dict[str, Any] | None:
    """Return the first object found along ``paths``.

    ``accept`` narrows what counts as a hit; an object that fails it is
    skipped and the next path is tried.
    """
    for path in paths:
        candidate = _walk(raw, path)
        if isinstance(candidate, Mapping) and (accept is None or accept(candidate)):
            return dict(candidate)
    return None


def is_present(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    return True


def first_present(source: Mapping[str, Any] | None, *keys: str, default: Any = None) -> Any:
    """Ordered fallback accessor: value of the first key holding a non-empty value."""
    if not source:
        return default
    for key in keys:
        value = source.get(key)
        if is_present(value):
            return value
    return default


def first_of(*values: Any, default: Any = None) -> Any:
    for value in values:
        if is_present(value):
            return value
    return default


def extract_id(source: Any) -> str | None:
    """Identifier of a record that may use either ``_id`` or ``id``."""
    if isinstance(source, Mapping):
        value = first_present(source, "_id", "id")
        return str(value) if value is not None else None
    if is_present(source) and isinstance(source, (str, int)):
        return str(source)
    return None
