"""
Configuration loading: packaged defaults, YAML overrides and the
environment overlay.
"""

import pytest

from clm_config import get_active_config
from clm_config.loader import load_yaml_file, parse_config
from clm_config.schema import CLMConfig, PaginationSettings


def _write(tmp_path, body: str, name="override.yaml"):
    path = tmp_path / name
    path.write_text(body, encoding="utf-8")
    return path


class TestDefaults:
    """Packaged defaults match the schema defaults."""

    def test_defaults_yaml(self):
        """Packaged defaults.yaml loads with the documented values."""
        config = get_active_config(environ={})
        assert config.pagination.default_limit == 50
        assert config.pagination.max_limit == 500
        assert config.lifecycle.expiring_soon_days == 30
        assert config.lifecycle.default_reminder_days == 7
        assert config.database.url == "sqlite:///clm.db"
        assert config.source.endswith("defaults.yaml")

    def test_schema_defaults(self):
        """Schema defaults alone give the same pagination."""
        assert CLMConfig().pagination == PaginationSettings(default_limit=50, max_limit=500)


class TestOverrides:
    """Later sources win."""

    def test_file_override(self, tmp_path):
        """An override file replaces only the keys it names."""
        path = _write(
            tmp_path,
            "pagination:\n  default_limit: 25\nlifecycle:\n  expiring_soon_days: 60\n",
        )
        config = get_active_config(path, environ={})
        assert config.pagination.default_limit == 25
        assert config.pagination.max_limit == 500
        assert config.lifecycle.expiring_soon_days == 60
        assert config.source == str(path)

    def test_file_named_by_environment(self, tmp_path):
        """CLM_CONFIG_FILE selects the override file."""
        path = _write(tmp_path, "logging:\n  level: WARNING\n")
        config = get_active_config(environ={"CLM_CONFIG_FILE": str(path)})
        assert config.logging.level == "WARNING"

    def test_environment_overlay(self, tmp_path):
        """Environment variables win over the file."""
        path = _write(tmp_path, "database:\n  url: sqlite:///from-file.db\n")
        config = get_active_config(
            path,
            environ={"CLM_DATABASE_URL": "sqlite:///from-env.db", "CLM_LOG_LEVEL": "debug"},
        )
        assert config.database.url == "sqlite:///from-env.db"
        assert config.logging.level == "DEBUG"

    def test_empty_file_changes_nothing(self, tmp_path):
        """An empty YAML file leaves the defaults in place."""
        path = _write(tmp_path, "")
        assert load_yaml_file(path) == {}
        assert get_active_config(path, environ={}).pagination.default_limit == 50

    def test_missing_file(self, tmp_path):
        """A named file that does not exist raises FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            get_active_config(tmp_path / "absent.yaml", environ={})


class TestValidation:
    """Malformed configuration raises ValueError."""

    @pytest.mark.parametrize(
        "data",
        [
            {"cache": {}},
            {"pagination": {"page_size": 10}},
            {"pagination": {"default_limit": 0}},
            {"pagination": {"default_limit": 600}},
            {"lifecycle": {"default_reminder_days": -1}},
            {"database": {"url": ""}},
            {"logging": "INFO"},
        ],
    )
    def test_rejected(self, data):
        """Unknown keys and out-of-range values are refused."""
        with pytest.raises(ValueError):
            parse_config(data)

    def test_top_level_must_be_mapping(self, tmp_path):
        """A YAML list at the top level is refused."""
        path = _write(tmp_path, "- just\n- a list\n")
        with pytest.raises(ValueError):
            load_yaml_file(path)


class TestPaginationNormalize:
    """Offsets and limits are clamped."""

    @pytest.mark.parametrize(
        "offset,limit,expected",
        [
            (None, None, (0, 50)),
            (-5, 10, (0, 10)),
            (3, 0, (3, 50)),
            (0, -1, (0, 50)),
            (0, 10_000, (0, 500)),
        ],
    )
    def test_normalize(self, offset, limit, expected):
        """Offsets floor at zero and limits fall back or clamp."""
        assert PaginationSettings().normalize(offset, limit) == expected
