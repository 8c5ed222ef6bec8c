"""
Props Schema Registry
Flow: Register field specs per part code → get_schema(code) → defaults / editor / validation

Every schema returned is the part-specific (or default) fields followed by
the common fields, so each instance is at least configurable for those.
"""

import re
from collections import OrderedDict
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Union

from pydantic import BaseModel, Field, model_validator

from assembly_factory.core.logging import get_logger

HEX_COLOR = re.compile(r"^#(?:[0-9a-fA-F]{3}|[0-9a-fA-F]{6})$")

DEFAULT_SCHEMA_KEY = "default"

OptionValue = Union[str, int, float, bool]


class FieldKind(str, Enum):
    """Kinds of configurable fields."""
    TEXT = "text"
    NUMBER = "number"
    BOOLEAN = "boolean"
    COLOR = "color"
    SELECT = "select"


class FieldOption(BaseModel):
    """One choice of a select field."""
    label: str
    value: OptionValue


def is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


class FieldSpec(BaseModel):
    """Declarative description of one configurable field."""
    kind: FieldKind = Field(..., description="Field kind")
    label: str = Field(..., description="Editor label")
    description: Optional[str] = Field(default=None, description="Editor help text")
    default_value: Any = Field(..., description="Value used when the config omits the field")
    options: Optional[List[FieldOption]] = Field(default=None, description="Choices for select fields")
    placeholder: Optional[str] = Field(default=None, description="Editor hint")

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def check_default_matches_kind(self) -> "FieldSpec":
        if self.kind == FieldKind.SELECT and not self.options:
            raise ValueError("select fields need at least one option")
        if not self.accepts(self.default_value):
            raise ValueError(
                f"default_value {self.default_value!r} is not compatible with kind '{self.kind.value}'"
            )
        return self

    def option_values(self) -> List[OptionValue]:
        return [option.value for option in self.options or []]

    def accepts(self, value: Any) -> bool:
        """Whether an already-typed value fits this field."""
        if self.kind == FieldKind.TEXT:
            return isinstance(value, str)
        if self.kind == FieldKind.COLOR:
            return isinstance(value, str) and bool(HEX_COLOR.match(value))
        if self.kind == FieldKind.NUMBER:
            return is_number(value)
        if self.kind == FieldKind.BOOLEAN:
            return isinstance(value, bool)
        if self.kind == FieldKind.SELECT:
            return any(
                value == option and type(value) is type(option)
                for option in self.option_values()
            )
        return False


def _options(*pairs) -> List[Dict[str, Any]]:
    return [{"label": label, "value": value} for label, value in pairs]


COMMON_FIELDS: Dict[str, Dict[str, Any]] = {
    "visible": {"kind": "boolean", "label": "Initially Visible", "default_value": True},
    "class_name": {
        "kind": "text",
        "label": "CSS Classes",
        "default_value": "",
        "placeholder": "e.g. mt-4 p-4",
    },
}

BUILTIN_SCHEMAS: Dict[str, Dict[str, Dict[str, Any]]] = {
    # Widgets
    "chart_line": {
        "title": {"kind": "text", "label": "Title", "default_value": "Score Trend"},
        "period": {
            "kind": "select",
            "label": "Default Period",
            "options": _options(("Last 7 Days", "7d"), ("Last 30 Days", "30d"), ("This Year", "1y")),
            "default_value": "30d",
        },
        "color": {"kind": "color", "label": "Line Color", "default_value": "#38bdf8"},
    },
    "chart_bar": {
        "title": {"kind": "text", "label": "Title", "default_value": "Weekly Volume"},
        "show_legend": {"kind": "boolean", "label": "Show Legend", "default_value": False},
        "start_color": {"kind": "color", "label": "Start Color", "default_value": "#3b82f6"},
    },
    "stats_card": {
        "title": {"kind": "text", "label": "Label", "default_value": "Total Athletes"},
        "value": {"kind": "text", "label": "Static Value (Demo)", "default_value": "1,284"},
        "trend": {"kind": "text", "label": "Trend Label", "default_value": "+12%"},
        "trend_color": {
            "kind": "select",
            "label": "Trend Color",
            "options": _options(("Emerald (Good)", "emerald"), ("Red (Bad)", "red"), ("Blue (Neutral)", "blue")),
            "default_value": "emerald",
        },
    },
    "recent_activity": {
        "title": {"kind": "text", "label": "Title", "default_value": "Recent Activity"},
        "limit": {"kind": "number", "label": "Max Items", "default_value": 5},
    },
    # Form inputs
    "score_input": {
        "label": {"kind": "text", "label": "Label", "default_value": "Arrow Score"},
        "max_score": {"kind": "number", "label": "Max Score", "default_value": 10},
        "allow_x": {"kind": "boolean", "label": "Allow X", "default_value": True},
    },
    "date_picker": {
        "label": {"kind": "text", "label": "Label", "default_value": "Select Date"},
        "min_date": {"kind": "text", "label": "Min Date", "default_value": "", "placeholder": "YYYY-MM-DD"},
    },
    # Full stack
    "bleeptest": {
        "default_level": {"kind": "number", "label": "Start Level", "default_value": 1},
        "audio_voice": {
            "kind": "select",
            "label": "Audio Voice",
            "options": _options(("Male - English", "en-m"), ("Female - English", "en-f")),
            "default_value": "en-m",
        },
    },
    "scoring": {
        "default_distance": {"kind": "number", "label": "Default Distance (m)", "default_value": 70},
        "arrows_per_end": {"kind": "number", "label": "Arrows per End", "default_value": 6},
    },
    "jersey_shop": {
        "currency": {"kind": "text", "label": "Currency", "default_value": "IDR"},
        "show_ratings": {"kind": "boolean", "label": "Show Ratings", "default_value": True},
    },
    # Fallback for parts without a specific schema
    DEFAULT_SCHEMA_KEY: {
        "title": {"kind": "text", "label": "Component Title", "default_value": "Untitled"},
    },
}


def build_fields(raw: Mapping[str, Mapping[str, Any]]) -> "OrderedDict[str, FieldSpec]":
    """Validate raw field definitions into ordered FieldSpecs."""
    fields: "OrderedDict[str, FieldSpec]" = OrderedDict()
    for name, definition in raw.items():
        if not name.isidentifier():
            raise ValueError(f"Field name '{name}' must be a valid identifier")
        fields[name] = definition if isinstance(definition, FieldSpec) else FieldSpec(**definition)
    return fields


class PropsSchemaRegistry:
    """
    Explicit code → schema registration map with a guaranteed fallback.

    Responsibilities:
    - Validate each schema once at registration (defaults must fit their kind)
    - Resolve the specific or default schema and append the common fields
    - Supply default configs for freshly staged instances
    """

    def __init__(self, common_fields: Optional[Mapping[str, Mapping[str, Any]]] = None) -> None:
        self._schemas: Dict[str, "OrderedDict[str, FieldSpec]"] = {}
        self._common = build_fields(common_fields if common_fields is not None else COMMON_FIELDS)
        self.logger = get_logger(__name__, component="props_schema_registry")

    def register(self, code: str, fields: Mapping[str, Mapping[str, Any]]) -> None:
        """Register (or replace) the schema for a part code."""
        self._schemas[code] = build_fields(fields)
        self.logger.debug("Schema registered", part_code=code, fields=list(fields))

    def has_schema(self, code: str) -> bool:
        return code in self._schemas and code != DEFAULT_SCHEMA_KEY

    def registered_codes(self) -> List[str]:
        return [code for code in self._schemas if code != DEFAULT_SCHEMA_KEY]

    def get_schema(self, code: str) -> "OrderedDict[str, FieldSpec]":
        """Specific (or default) fields followed by the common fields."""
        specific = self._schemas.get(code) or self._schemas.get(DEFAULT_SCHEMA_KEY) or OrderedDict()
        schema: "OrderedDict[str, FieldSpec]" = OrderedDict(specific)
        for name, spec in self._common.items():
            # a part's own declaration keeps precedence and position
            schema.setdefault(name, spec)
        return schema

    def defaults(self, code: str) -> Dict[str, Any]:
        """Default config for a part code."""
        return {name: spec.default_value for name, spec in self.get_schema(code).items()}


def build_default_registry() -> PropsSchemaRegistry:
    registry = PropsSchemaRegistry()
    for code, fields in BUILTIN_SCHEMAS.items():
        registry.register(code, fields)
    return registry


# Process-wide registry, built at import time
schema_registry = build_default_registry()
