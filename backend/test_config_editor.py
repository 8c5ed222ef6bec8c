"""
Tests for the configuration editor
"""

import pytest
from conftest import descriptor

from assembly_factory.core.config_editor import ConfigurationEditor, coerce_value, config_editor
from assembly_factory.core.exceptions import NotFoundError, ValidationError
from assembly_factory.core.part_instance import PartInstance
from assembly_factory.core.props_schema import schema_registry
from assembly_factory.core.staging import StagingComposer
from assembly_factory.models.part import PartType


def spec(code, name):
    return schema_registry.get_schema(code)[name]


@pytest.mark.parametrize(
    "code,name,raw,expected",
    [
        ("stats_card", "title", "Athletes", "Athletes"),
        ("stats_card", "title", 42, "42"),
        ("recent_activity", "limit", "12", 12),
        ("recent_activity", "limit", "2.5", 2.5),
        ("recent_activity", "limit", 3, 3),
        ("score_input", "allow_x", "false", False),
        ("score_input", "allow_x", "ON", True),
        ("score_input", "allow_x", 1, True),
        ("chart_line", "color", " #ABC ", "#ABC"),
        ("chart_line", "period", "7D", "7d"),
    ],
)
def test_coerce_value(code, name, raw, expected):
    assert coerce_value(name, spec(code, name), raw) == expected


@pytest.mark.parametrize(
    "code,name,raw",
    [
        ("recent_activity", "limit", "many"),
        ("recent_activity", "limit", "nan"),
        ("recent_activity", "limit", 10**400),
        ("recent_activity", "limit", "9" * 400),
        ("recent_activity", "limit", True),
        ("score_input", "allow_x", "maybe"),
        ("score_input", "allow_x", 2),
        ("chart_line", "color", "blue"),
        ("chart_line", "period", "2w"),
        ("stats_card", "title", None),
    ],
)
def test_coerce_value_rejects(code, name, raw):
    with pytest.raises(ValidationError) as exc_info:
        coerce_value(name, spec(code, name), raw)
    assert exc_info.value.details["field"] == name
    assert exc_info.value.status_code == 400


def test_describe_reports_effective_values():
    instance = PartInstance(
        instance_id="i1",
        part_code="chart_bar",
        sort_order=0,
        config={"title": "Volume", "show_legend": "not a bool"},
    )
    surface = config_editor.describe(instance)
    values = {field.name: field.value for field in surface.fields}

    assert values["title"] == "Volume"
    assert values["show_legend"] is False
    assert values["start_color"] == "#3b82f6"
    assert values["visible"] is True
    assert [field.name for field in surface.fields][-2:] == ["visible", "class_name"]


def test_describe_with_unparsed_config_uses_defaults():
    instance = PartInstance(instance_id="i1", part_code="scoring", sort_order=0, config="{broken")
    values = {field.name: field.value for field in config_editor.describe(instance).fields}
    assert values["default_distance"] == 70


def test_merge_keeps_current_and_rejects_unknown_fields():
    merged = config_editor.merge("scoring", {"default_distance": 30}, {"arrows_per_end": "3"})
    assert merged == {"default_distance": 30, "arrows_per_end": 3}

    with pytest.raises(ValidationError):
        config_editor.merge("scoring", {}, {"colour": "red"})


def test_validate_config():
    assert config_editor.validate_config("scoring", None) == {}
    assert config_editor.validate_config("scoring", {"visible": "no"}) == {"visible": False}
    with pytest.raises(ValidationError):
        config_editor.validate_config("scoring", ["not", "a", "dict"])


def test_apply_writes_only_the_target_instance():
    composer = StagingComposer()
    a = composer.add(descriptor("stats_card", PartType.WIDGET))
    b = composer.add(descriptor("chart_line", PartType.WIDGET))

    updated = config_editor.apply(composer, a.instance_id, {"title": "Coaches", "trend_color": "red"})

    assert updated.config["title"] == "Coaches"
    assert updated.config["trend_color"] == "red"
    assert updated.config["value"] == "1,284"
    assert composer.get(b.instance_id).config == schema_registry.defaults("chart_line")


def test_apply_invalid_value_leaves_config_untouched():
    composer = StagingComposer()
    a = composer.add(descriptor("stats_card", PartType.WIDGET))
    before = composer.get(a.instance_id).config

    with pytest.raises(ValidationError):
        config_editor.apply(composer, a.instance_id, {"title": "ok", "trend_color": "purple"})
    assert composer.get(a.instance_id).config == before


def test_apply_unknown_instance():
    with pytest.raises(NotFoundError):
        ConfigurationEditor().apply(StagingComposer(), "missing", {"title": "x"})


def test_reset_returns_defaults():
    assert config_editor.reset("date_picker")["min_date"] == ""
