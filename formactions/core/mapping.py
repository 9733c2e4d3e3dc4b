"""
Field-value mapping - resolves `{field:name}` tags against submitted form values.
"""

import re
from typing import Any, Dict, Optional

FIELD_TAG = re.compile(r"^\{field:([A-Za-z0-9_\-]+)\}$")
INLINE_FIELD_TAG = re.compile(r"\{field:([A-Za-z0-9_\-]+)\}")


def is_empty(value: Any) -> bool:
    """Empty means absent: None, blank strings and empty containers. 0 and False are values."""
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    if isinstance(value, (list, tuple, dict, set)):
        return len(value) == 0
    return False


class TagMapper:
    """Maps Action settings onto submitted values.

    A setting is either a literal or a `{field:name}` tag naming a form field.
    Tags embedded in longer strings are substituted inline.
    """

    def field_name(self, raw: Any) -> Optional[str]:
        """Return the field name when `raw` is exactly one field tag."""
        if not isinstance(raw, str):
            return None
        match = FIELD_TAG.match(raw.strip())
        return match.group(1) if match else None

    def map_value(self, raw: Any, values: Dict[str, Any]) -> Any:
        name = self.field_name(raw)
        if name is not None:
            return values.get(name)

        if isinstance(raw, str) and "{field:" in raw:
            return INLINE_FIELD_TAG.sub(lambda m: _as_text(values.get(m.group(1))), raw)

        return raw

    def map_fields(self, mapping: Dict[str, Any], values: Dict[str, Any]) -> Dict[str, Any]:
        return {key: self.map_value(raw, values) for key, raw in (mapping or {}).items()}


def prepare_data(data: Dict[str, Any]) -> Dict[str, Any]:
    """Strip empty entries before handing data to the CRM."""
    return {key: value for key, value in data.items() if not is_empty(value)}


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (list, tuple)):
        return ", ".join(str(v) for v in value)
    return str(value)
