"""
Tests for the structured logging processors
"""

import structlog

from assembly_factory.config.settings import get_settings
from assembly_factory.core.delete_confirmation import DeleteOutcome
from assembly_factory.core.logging import add_app_context, build_processors, enum_values, get_logger
from assembly_factory.models.assembly import AssemblyStatus


def test_app_context_is_stamped_without_overriding_bound_values():
    settings = get_settings()

    event = add_app_context(None, "info", {"event": "Assembly created"})
    assert event["service"] == settings.APP_NAME
    assert event["environment"] == settings.ENVIRONMENT

    bound = add_app_context(None, "info", {"event": "x", "service": "seeder"})
    assert bound["service"] == "seeder"


def test_enums_are_logged_by_value():
    event = enum_values(None, "info", {
        "from_status": AssemblyStatus.DEPLOYED,
        "outcomes": [DeleteOutcome.ARMED, "raw"],
        "count": 3,
    })
    assert event == {"from_status": "DEPLOYED", "outcomes": ["ARMED", "raw"], "count": 3}


def test_renderer_follows_log_format():
    assert isinstance(build_processors("json")[-1], structlog.processors.JSONRenderer)
    assert isinstance(build_processors("console")[-1], structlog.dev.ConsoleRenderer)


def test_get_logger_binds_component_context():
    logger = get_logger("assembly_factory.test", component="workbench")
    assert structlog.get_context(logger)["component"] == "workbench"
