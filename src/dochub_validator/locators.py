"""Locator helpers: resolution of fragment references and derived ids.

A locator is an opaque string naming a document fragment, e.g. ``file:///$root$``
for the entry point or ``https://example.org/shared.yaml`` for a remote import.
"""

import hashlib
import posixpath
import re

ROOT_LOCATOR = "file:///$root$"
DIAGNOSTIC_PREFIX = "$error"

_SCHEME_RE = re.compile(r"^([a-zA-Z][a-zA-Z0-9+.-]*)://")


def normalize_path(path: str) -> str:
    """Convert any path to canonical forward slash format.

    Examples:
        >>> normalize_path("arch\\\\components.yaml")
        'arch/components.yaml'
    """
    if not path:
        return path

    return path.replace("\\", "/")


def scheme_of(locator: str) -> str | None:
    """Return the lower-cased scheme of a locator, or None for relative references."""
    match = _SCHEME_RE.match(locator)
    return match.group(1).lower() if match else None


def split_locator(locator: str) -> tuple[str, str]:
    """Split ``scheme://rest`` into its prefix (``scheme://authority``) and path."""
    match = _SCHEME_RE.match(locator)
    if not match:
        return "", locator

    rest = locator[match.end():]
    slash = rest.find("/")
    if slash == -1:
        return locator, "/"
    return locator[:match.end() + slash], rest[slash:]


def resolve_locator(reference: str, base: str) -> str:
    """Resolve a reference found inside the fragment at ``base``.

    Absolute references (anything with a scheme) are returned unchanged apart
    from separator normalization; the path of a ``file:`` reference is
    normalized too. Relative references are joined against the
    directory of ``base`` and normalized, so ``a/../b.yaml`` and ``b.yaml``
    resolve to the same locator.

    Args:
        reference: Reference string as written in the fragment
        base: Locator of the fragment containing the reference

    Returns:
        Absolute locator
    """
    reference = normalize_path(reference.strip())

    scheme = scheme_of(reference)
    if scheme == "file":
        prefix, path = split_locator(reference)
        return f"{prefix}{_normpath(path)}"
    if scheme:
        return reference

    prefix, base_path = split_locator(base)
    if reference.startswith("/"):
        joined = reference
    else:
        joined = posixpath.join(posixpath.dirname(base_path) or "/", reference)

    return f"{prefix}{_normpath(joined)}"


def _normpath(path: str) -> str:
    normalized = posixpath.normpath(path)
    # normpath keeps a leading "//" on POSIX
    if normalized.startswith("//"):
        normalized = "/" + normalized.lstrip("/")
    return normalized


def diagnostic_id(locator: str) -> str:
    """Derive the stable diagnostic id for a locator."""
    digest = hashlib.md5(locator.encode("utf-8")).hexdigest()
    return f"{DIAGNOSTIC_PREFIX}.{digest}"


def is_diagnostic_id(value: str | None) -> bool:
    """Check whether an id marks a load diagnostic rather than a rule outcome."""
    return bool(value) and value.startswith(DIAGNOSTIC_PREFIX)
