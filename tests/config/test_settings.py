"""
Settings loading: defaults, YAML overlay and environment overrides.
"""

import pytest
import yaml

from catering_config import Settings, load_settings


@pytest.fixture
def write_yaml(tmp_path):
    def _write(data, name="catering.yaml"):
        path = tmp_path / name
        path.write_text(yaml.safe_dump(data))
        return path

    return _write


class TestDefaults:

    def test_shipped_defaults(self):
        settings = load_settings(environ={})

        assert isinstance(settings, Settings)
        assert settings.lock_backend == "advisory"
        assert settings.generation_horizon_days == 7
        assert settings.generation_cron == "0 0 * * *"
        assert settings.fallback_cron == "0 * * * *"
        assert settings.run_generation_on_startup is True
        assert settings.outbox_max_retries == 5
        assert settings.outbox_stale_after_seconds == 60

    def test_settings_are_frozen(self):
        settings = load_settings(environ={})
        with pytest.raises(AttributeError):
            settings.pool_size = 50


class TestLayering:

    def test_yaml_file_overrides_defaults(self, write_yaml):
        path = write_yaml({"lock_backend": "lease", "generation_horizon_days": 14})

        settings = load_settings(path, environ={})

        assert settings.lock_backend == "lease"
        assert settings.generation_horizon_days == 14
        assert settings.fallback_cron == "0 * * * *"

    def test_config_path_from_environment(self, write_yaml):
        path = write_yaml({"pool_size": 9})

        settings = load_settings(environ={"CATERING_CONFIG": str(path)})

        assert settings.pool_size == 9

    def test_environment_overrides_file(self, write_yaml):
        path = write_yaml({"lock_backend": "advisory", "pool_size": 9})

        settings = load_settings(
            path,
            environ={
                "CATERING_LOCK_BACKEND": "lease",
                "CATERING_POOL_SIZE": "3",
                "CATERING_RUN_GENERATION_ON_STARTUP": "no",
                "CATERING_DATABASE_URL": "sqlite:///:memory:",
            },
        )

        assert settings.lock_backend == "lease"
        assert settings.pool_size == 3
        assert settings.run_generation_on_startup is False
        assert settings.database_url == "sqlite:///:memory:"

    def test_empty_file_keeps_defaults(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")

        assert load_settings(path, environ={}) == load_settings(environ={})


class TestValidation:

    def test_unknown_key_rejected(self, write_yaml):
        path = write_yaml({"lock_backned": "lease"})

        with pytest.raises(ValueError, match="Unknown configuration keys"):
            load_settings(path, environ={})

    @pytest.mark.parametrize(
        "overrides, message",
        [
            ({"lock_backend": "redis"}, "lock_backend"),
            ({"pool_size": 0}, "pool_size"),
            ({"generation_horizon_days": -1}, "generation_horizon_days"),
            ({"fallback_cron": "hourly"}, "fallback_cron"),
            ({"outbox_max_retries": -2}, "outbox_max_retries"),
        ],
    )
    def test_invalid_values(self, write_yaml, overrides, message):
        with pytest.raises(ValueError, match=message):
            load_settings(write_yaml(overrides), environ={})

    @pytest.mark.parametrize(
        "env",
        [
            {"CATERING_POOL_SIZE": "five"},
            {"CATERING_ECHO_SQL": "maybe"},
        ],
    )
    def test_bad_environment_types(self, env):
        with pytest.raises(ValueError):
            load_settings(environ=env)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_settings(tmp_path / "absent.yaml", environ={})

    def test_non_mapping_file(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n")

        with pytest.raises(ValueError, match="mapping"):
            load_settings(path, environ={})
