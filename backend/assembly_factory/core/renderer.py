"""
Renderer Resolver
Flow: instance → parse config → merge schema defaults → resolve(code) or fallback(type) → RenderedBlock

┌───────────────────────────────────────────────────────────────┐
│  code registered?  ── yes ──▶ bespoke render function         │
│        │ no                                                   │
│        ▼                                                      │
│  functional type ──▶ composite_block | metric_tile | input_control │
│                                                               │
│  config unparseable / render raised ──▶ config_error block    │
└───────────────────────────────────────────────────────────────┘

A malformed instance never aborts the rest of the composition.
"""

import json
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional

from pydantic import BaseModel, Field

from assembly_factory.core.logging import get_logger
from assembly_factory.core.part_instance import PartInstance
from assembly_factory.core.parts_catalog import PartDescriptor, PartsCatalog, parts_catalog
from assembly_factory.core.props_schema import PropsSchemaRegistry, schema_registry
from assembly_factory.models.part import PartType

RenderFn = Callable[[PartDescriptor, Dict[str, Any]], Dict[str, Any]]


class BlockKind(str, Enum):
    BESPOKE = "bespoke"
    PLACEHOLDER = "placeholder"
    ERROR = "error"


ERROR_TEMPLATE = "config_error"

FALLBACK_TEMPLATES: Dict[PartType, str] = {
    PartType.FULLSTACK: "composite_block",
    PartType.WIDGET: "metric_tile",
    PartType.FORM_INPUT: "input_control",
}


class RenderedBlock(BaseModel):
    """One visible block of a rendered composition."""
    instance_id: str
    part_code: str
    sort_order: int
    kind: BlockKind
    template: str = Field(..., description="Renderer or placeholder template name")
    title: str
    props: Dict[str, Any] = Field(default_factory=dict)
    payload: Dict[str, Any] = Field(default_factory=dict)
    error: Optional[str] = None


class ConfigParseError(ValueError):
    """Stored config is not a JSON object."""


def parse_config(config: Any) -> Dict[str, Any]:
    """Parse a config blob into a dict; empty means 'use defaults'."""
    if config is None or config == "":
        return {}
    if isinstance(config, dict):
        return dict(config)
    if isinstance(config, (str, bytes)):
        try:
            parsed = json.loads(config)
        except json.JSONDecodeError as e:
            raise ConfigParseError(f"config is not valid JSON: {e.msg}") from e
        if parsed is None:
            return {}
        if not isinstance(parsed, dict):
            raise ConfigParseError(f"config must be a JSON object, got {type(parsed).__name__}")
        return parsed
    raise ConfigParseError(f"unsupported config type {type(config).__name__}")


def _placeholder(template: str) -> RenderFn:
    def render(descriptor: PartDescriptor, props: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "label": descriptor.name,
            "functional_type": descriptor.functional_type.value,
            "placeholder": template,
        }
    return render


class RendererResolver:
    """
    Explicit code → render function registration map.

    Process:
    1. register() → bespoke renderers at startup
    2. resolve() → bespoke renderer or None
    3. render_instance() → always returns a block (bespoke, placeholder or error)
    """

    def __init__(
        self,
        catalog: Optional[PartsCatalog] = None,
        registry: Optional[PropsSchemaRegistry] = None,
    ) -> None:
        self._renderers: Dict[str, RenderFn] = {}
        self._catalog = catalog or parts_catalog
        self._registry = registry or schema_registry
        self.logger = get_logger(__name__, component="renderer_resolver")

    def register(self, code: str, render: RenderFn) -> None:
        self._renderers[code] = render

    def unregister(self, code: str) -> bool:
        return self._renderers.pop(code, None) is not None

    def registered_codes(self) -> List[str]:
        return list(self._renderers)

    def resolve(self, code: str) -> Optional[RenderFn]:
        return self._renderers.get(code)

    def _descriptor_for(self, code: str) -> PartDescriptor:
        descriptor = self._catalog.get(code)
        if descriptor is not None:
            return descriptor
        # part no longer in the catalog: still show something
        return PartDescriptor(code=code, name=code, category="UNKNOWN", functional_type=PartType.FULLSTACK)

    def render_instance(self, instance: PartInstance) -> RenderedBlock:
        descriptor = self._descriptor_for(instance.part_code)
        base = {
            "instance_id": instance.instance_id,
            "part_code": instance.part_code,
            "sort_order": instance.sort_order,
            "title": descriptor.name,
        }

        try:
            stored = parse_config(instance.config)
        except ConfigParseError as e:
            self.logger.warning(
                "Config parse failed, rendering error placeholder",
                instance_id=instance.instance_id,
                part_code=instance.part_code,
                error=str(e),
            )
            return RenderedBlock(kind=BlockKind.ERROR, template=ERROR_TEMPLATE, error=str(e), **base)

        props = {**self._registry.defaults(instance.part_code), **stored}

        render = self.resolve(instance.part_code)
        if render is not None:
            kind, template = BlockKind.BESPOKE, instance.part_code
        else:
            kind = BlockKind.PLACEHOLDER
            template = FALLBACK_TEMPLATES.get(descriptor.functional_type, FALLBACK_TEMPLATES[PartType.FULLSTACK])
            render = _placeholder(template)

        try:
            payload = render(descriptor, props)
        except Exception as e:
            self.logger.error(
                "Renderer raised, rendering error placeholder",
                instance_id=instance.instance_id,
                part_code=instance.part_code,
                error=str(e),
            )
            return RenderedBlock(
                kind=BlockKind.ERROR, template=ERROR_TEMPLATE, props=props, error=f"render failed: {e}", **base
            )

        return RenderedBlock(kind=kind, template=template, props=props, payload=payload or {}, **base)

    def render_composition(self, instances: Iterable[PartInstance]) -> List[RenderedBlock]:
        """Exactly one block per instance, in sort order."""
        ordered = sorted(instances, key=lambda i: i.sort_order)
        return [self.render_instance(instance) for instance in ordered]


# ─────────────────────────────────────────────────────────────
# Built-in bespoke renderers
# ─────────────────────────────────────────────────────────────
def render_stats_card(descriptor: PartDescriptor, props: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "label": props.get("title"),
        "value": props.get("value"),
        "trend": {"label": props.get("trend"), "color": props.get("trend_color")},
    }


def render_line_chart(descriptor: PartDescriptor, props: Dict[str, Any]) -> Dict[str, Any]:
    return {"title": props.get("title"), "period": props.get("period"), "series": [], "stroke": props.get("color")}


def render_bar_chart(descriptor: PartDescriptor, props: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "title": props.get("title"),
        "legend": bool(props.get("show_legend")),
        "fill": props.get("start_color"),
        "bars": [],
    }


def render_recent_activity(descriptor: PartDescriptor, props: Dict[str, Any]) -> Dict[str, Any]:
    return {"title": props.get("title"), "items": [], "limit": int(props.get("limit", 5))}


def render_score_input(descriptor: PartDescriptor, props: Dict[str, Any]) -> Dict[str, Any]:
    max_score = int(props.get("max_score", 10))
    keys: List[str] = [str(score) for score in range(max_score, 0, -1)] + ["M"]
    if props.get("allow_x"):
        keys.insert(0, "X")
    return {"label": props.get("label"), "keys": keys}


def render_date_picker(descriptor: PartDescriptor, props: Dict[str, Any]) -> Dict[str, Any]:
    return {"label": props.get("label"), "min_date": props.get("min_date") or None}


BUILTIN_RENDERERS: Dict[str, RenderFn] = {
    "stats_card": render_stats_card,
    "chart_line": render_line_chart,
    "chart_bar": render_bar_chart,
    "recent_activity": render_recent_activity,
    "score_input": render_score_input,
    "date_picker": render_date_picker,
}


def build_default_resolver(catalog: Optional[PartsCatalog] = None) -> RendererResolver:
    resolver = RendererResolver(catalog=catalog)
    for code, render in BUILTIN_RENDERERS.items():
        resolver.register(code, render)
    return resolver


renderer_resolver = build_default_resolver()
