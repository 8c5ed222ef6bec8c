"""
Configuration Editor - schema-driven edit surface and validated write-back
Flow: selected instance → describe() → user edits → merge() (coerce + validate) → update_config()

Values are coerced at this boundary, so a malformed document can only come
from stored legacy data, never from an edit.
"""

import math
from typing import Any, Dict, List, Mapping, Optional

from pydantic import BaseModel, Field

from assembly_factory.core.exceptions import NotFoundError, ValidationError
from assembly_factory.core.logging import get_logger
from assembly_factory.core.part_instance import PartInstance
from assembly_factory.core.props_schema import (
    FieldKind, FieldOption, FieldSpec, HEX_COLOR, PropsSchemaRegistry, is_number, schema_registry
)
from assembly_factory.core.staging import StagingComposer

TRUE_STRINGS = {"true", "1", "yes", "on"}
FALSE_STRINGS = {"false", "0", "no", "off"}


def is_finite_number(value: Any) -> bool:
    """True for numbers that fit a float; ints too large to convert do not."""
    if not is_number(value):
        return False
    try:
        return math.isfinite(value)
    except OverflowError:
        return False


class EditorField(BaseModel):
    """One row of the edit surface."""
    name: str
    kind: FieldKind
    label: str
    description: Optional[str] = None
    placeholder: Optional[str] = None
    options: Optional[List[FieldOption]] = None
    default_value: Any = None
    value: Any = None


class EditSurface(BaseModel):
    instance_id: str
    part_code: str
    fields: List[EditorField] = Field(default_factory=list)


def coerce_value(name: str, spec: FieldSpec, raw: Any) -> Any:
    """Coerce a raw edit value into the field's kind or raise ValidationError."""
    kind = spec.kind

    if kind == FieldKind.TEXT:
        if isinstance(raw, str):
            return raw
        if is_number(raw):
            return str(raw)

    elif kind == FieldKind.NUMBER:
        if is_finite_number(raw):
            return raw
        if isinstance(raw, str) and raw.strip():
            text = raw.strip()
            try:
                number = int(text)
            except ValueError:
                try:
                    number = float(text)
                except ValueError:
                    number = math.nan
            if is_finite_number(number):
                return number

    elif kind == FieldKind.BOOLEAN:
        if isinstance(raw, bool):
            return raw
        if isinstance(raw, int) and raw in (0, 1):
            return bool(raw)
        if isinstance(raw, str):
            lowered = raw.strip().lower()
            if lowered in TRUE_STRINGS:
                return True
            if lowered in FALSE_STRINGS:
                return False

    elif kind == FieldKind.COLOR:
        if isinstance(raw, str) and HEX_COLOR.match(raw.strip()):
            return raw.strip()

    elif kind == FieldKind.SELECT:
        if spec.accepts(raw):
            return raw
        # form controls post option values back as strings
        for option in spec.option_values():
            if isinstance(raw, str) and str(option).lower() == raw.lower():
                return option

    raise ValidationError(
        f"Invalid value for '{name}' ({kind.value})",
        field=name,
        value=raw,
    )


class ConfigurationEditor:
    """
    Edits one instance's configuration against its part schema.

    Responsibilities:
    - Build the edit surface (schema fields + effective values)
    - Coerce and validate incoming values
    - Write the merged config back without touching sibling instances
    """

    def __init__(self, registry: Optional[PropsSchemaRegistry] = None) -> None:
        self._registry = registry or schema_registry
        self.logger = get_logger(__name__, component="configuration_editor")

    @property
    def registry(self) -> PropsSchemaRegistry:
        return self._registry

    def describe(self, instance: PartInstance) -> EditSurface:
        schema = self._registry.get_schema(instance.part_code)
        current = instance.config_dict() or {}
        fields = []
        for name, spec in schema.items():
            value = current.get(name, spec.default_value)
            if not spec.accepts(value):
                value = spec.default_value
            fields.append(
                EditorField(
                    name=name,
                    kind=spec.kind,
                    label=spec.label,
                    description=spec.description,
                    placeholder=spec.placeholder,
                    options=spec.options,
                    default_value=spec.default_value,
                    value=value,
                )
            )
        return EditSurface(instance_id=instance.instance_id, part_code=instance.part_code, fields=fields)

    def merge(
        self,
        part_code: str,
        current: Optional[Mapping[str, Any]],
        changes: Mapping[str, Any],
    ) -> Dict[str, Any]:
        """Return a new config with validated changes applied on top of current."""
        schema = self._registry.get_schema(part_code)
        merged = dict(current or {})
        for name, raw in changes.items():
            spec = schema.get(name)
            if spec is None:
                raise ValidationError(f"Unknown field '{name}' for part '{part_code}'", field=name)
            merged[name] = coerce_value(name, spec, raw)
        return merged

    def validate_config(self, part_code: str, config: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
        """Validate a complete (possibly partial) config document."""
        if config is None:
            return {}
        if not isinstance(config, Mapping):
            raise ValidationError(f"Config for part '{part_code}' must be an object", field="config")
        return self.merge(part_code, {}, config)

    def reset(self, part_code: str) -> Dict[str, Any]:
        return self._registry.defaults(part_code)

    def apply(self, composer: StagingComposer, instance_id: str, changes: Mapping[str, Any]) -> PartInstance:
        """Edit a staged instance in place of its old config."""
        instance = composer.get(instance_id)
        if instance is None:
            raise NotFoundError(
                f"Staged instance '{instance_id}' not found",
                resource_type="part_instance",
                resource_id=instance_id,
            )
        merged = self.merge(instance.part_code, instance.config_dict(), changes)
        composer.update_config(instance_id, merged)
        self.logger.info("Instance config updated", instance_id=instance_id, fields=list(changes))
        return composer.get(instance_id)


config_editor = ConfigurationEditor()
