"""URI templating helpers."""

from __future__ import annotations

import re
from typing import Any, Mapping

_PLACEHOLDER = re.compile(r"\{([A-Za-z_][A-Za-z0-9_]*)\}")
_ABSOLUTE = re.compile(r"^[A-Za-z][A-Za-z0-9+.-]*://")


def fill_path_params(uri: str, params: Mapping[str, Any] | None) -> tuple[str, dict[str, Any]]:
    """Substitute ``{name}`` placeholders in *uri* from *params*.

    Matching keys are consumed; a placeholder without a matching key becomes
    ``0``. Returns the filled URI and the remaining parameters. *params* is
    not modified.
    """
    remaining = dict(params or {})
    if "{" not in uri:
        return uri, remaining

    filled: dict[str, str] = {}

    def _replace(match: re.Match) -> str:
        name = match.group(1)
        if name not in filled:
            filled[name] = str(remaining.pop(name)) if name in remaining else "0"
        return filled[name]

    return _PLACEHOLDER.sub(_replace, uri), remaining


def is_absolute(uri: str) -> bool:
    return bool(_ABSOLUTE.match(uri))


def join_host(host: str, uri: str) -> str:
    """Prefix a relative *uri* with *host*, using exactly one ``/`` between them."""
    if is_absolute(uri):
        return uri
    return host.rstrip("/") + "/" + uri.lstrip("/")
