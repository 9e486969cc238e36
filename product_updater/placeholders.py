"""``{name}`` placeholder substitution for server-supplied URL templates."""

import re
from typing import Mapping, Optional

_PLACEHOLDER = re.compile(r"\{([a-z_][a-z0-9_]*)\}")


def fill_placeholders(template: str, values: Mapping[str, Optional[str]]) -> str:
    """Replace each known ``{name}`` in ``template`` with ``values[name]``.

    ``None`` becomes an empty string. Unknown placeholders are left as-is so a
    template the client does not understand is not silently mangled.
    """

    def _sub(match: "re.Match[str]") -> str:
        name = match.group(1)
        if name not in values:
            return match.group(0)
        value = values[name]
        return "" if value is None else str(value)

    return _PLACEHOLDER.sub(_sub, template)
