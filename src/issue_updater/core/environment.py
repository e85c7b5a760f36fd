"""Build environment variable expansion."""

from __future__ import annotations

import re
from collections.abc import Mapping

# $NAME or ${NAME}; dots are only allowed inside braces
VARIABLE_PATTERN = re.compile(r"\$([A-Za-z0-9_]+|\{[A-Za-z0-9_.]+\})")


def expand(text: str | None, environment: Mapping[str, str]) -> str | None:
    """Replace $VAR and ${VAR} with values from the environment.

    Variables missing from the environment are left as written.

    Examples:
        >>> expand("Fixed in ${BUILD_ID}", {"BUILD_ID": "42"})
        'Fixed in 42'
        >>> expand("$UNKNOWN stays", {})
        '$UNKNOWN stays'
    """
    if text is None:
        return None

    def replace(match: re.Match[str]) -> str:
        name = match.group(1)
        if name.startswith("{"):
            name = name[1:-1]
        value = environment.get(name)
        return match.group(0) if value is None else value

    return VARIABLE_PATTERN.sub(replace, text)
