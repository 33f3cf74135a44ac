"""
JobRegistry: build once, freeze, look up.
"""

import pytest

from catering_kernel.exceptions import (
    InvalidCronExpressionError,
    JobNotRegisteredError,
    RegistryFrozenError,
)

from catering_batch.registry import JobDefinition, JobRegistry


def _definition(name="generate_work_items", trigger="0 0 * * *", **kwargs):
    return JobDefinition(
        name=name,
        trigger=trigger,
        lock_name=kwargs.pop("lock_name", name),
        handler=kwargs.pop("handler", lambda: None),
        **kwargs,
    )


class TestJobDefinition:

    def test_cron_is_parsed(self):
        definition = _definition(trigger="30 2 * * 1-5")
        assert definition.cron.minutes == frozenset({30})
        assert definition.cron.hours == frozenset({2})
        assert definition.cron.days_of_week == frozenset({1, 2, 3, 4, 5})

    def test_invalid_trigger_rejected_on_construction(self):
        with pytest.raises(InvalidCronExpressionError):
            _definition(trigger="every hour")

    def test_run_on_startup_defaults_false(self):
        assert _definition().run_on_startup is False


class TestJobRegistry:

    def test_register_and_get(self):
        registry = JobRegistry()
        definition = _definition()

        registry.register(definition)

        assert registry.get("generate_work_items") is definition
        assert "generate_work_items" in registry
        assert len(registry) == 1

    def test_iteration_preserves_registration_order(self):
        registry = JobRegistry()
        registry.register(_definition("b_job"))
        registry.register(_definition("a_job"))

        assert [d.name for d in registry] == ["b_job", "a_job"]
        assert registry.names() == ("a_job", "b_job")

    def test_duplicate_name_rejected(self):
        registry = JobRegistry()
        registry.register(_definition())

        with pytest.raises(ValueError, match="already registered"):
            registry.register(_definition())

    def test_unknown_job(self):
        registry = JobRegistry()
        registry.register(_definition("apply_fallback"))

        with pytest.raises(JobNotRegisteredError) as exc_info:
            registry.get("nightly_export")
        assert exc_info.value.available == ("apply_fallback",)

    def test_freeze_blocks_registration(self):
        registry = JobRegistry()
        registry.register(_definition())

        frozen = registry.freeze()

        assert frozen is registry
        assert registry.is_frozen
        with pytest.raises(RegistryFrozenError):
            registry.register(_definition("apply_fallback"))
        assert len(registry) == 1
