"""
Tests for marker column policies, per-model options and configuration.
"""

from datetime import datetime, timedelta

import pytest

from paranoid import (
    ColumnPolicy,
    ColumnType,
    ParanoidConfig,
    ParanoidConfigurationError,
    ParanoidOptions,
    configure,
    get_config,
    set_config,
)


@pytest.fixture
def restore_config():
    """Put the global configuration back after a test changes it."""
    original = get_config()
    yield
    set_config(original)


class TestColumnPolicy:
    """Test how each marker kind is interpreted."""

    def test_time_marker(self):
        """Time markers are deleted iff non-null."""
        policy = ColumnPolicy(column="deleted_at", column_type="time")

        assert policy.is_deleted(None) is False
        assert policy.is_deleted(datetime(2024, 1, 1)) is True
        assert isinstance(policy.deletion_value(), datetime)
        assert policy.cleared_value() is None

    def test_time_marker_uses_given_now(self):
        policy = ColumnPolicy()
        now = datetime(2024, 5, 1, 12, 0, 0)

        assert policy.deletion_value(now) == now

    def test_boolean_marker(self):
        """A non-null boolean marker always means deleted."""
        policy = ColumnPolicy(column="deleted", column_type=ColumnType.BOOLEAN)

        assert policy.is_deleted(None) is False
        assert policy.is_deleted(True) is True
        assert policy.is_deleted(False) is True
        assert policy.deletion_value() is True

    def test_string_marker_sentinel(self):
        """Only the sentinel value marks a string-kind record deleted."""
        policy = ColumnPolicy(
            column="status", column_type="string", deleted_value="deleted"
        )

        assert policy.is_deleted("deleted") is True
        assert policy.is_deleted("archived") is False
        assert policy.is_deleted(None) is False
        assert policy.deletion_value() == "deleted"
        assert policy.cleared_value() is None

    def test_string_marker_requires_sentinel(self):
        """A string marker without a sentinel is rejected at setup."""
        with pytest.raises(ParanoidConfigurationError) as exc:
            ColumnPolicy(column="status", column_type="string")

        assert "deleted_value" in str(exc.value)

    def test_policy_is_immutable(self):
        policy = ColumnPolicy()

        with pytest.raises(Exception):
            policy.column = "other"


class TestParanoidOptions:
    """Test per-model options and their defaults."""

    def test_resolve_fills_defaults(self):
        config = ParanoidConfig(default_recovery_window_seconds=60)

        options = ParanoidOptions().resolve(config)

        assert options.column == "deleted_at"
        assert options.column_type is ColumnType.TIME
        assert options.dependent_recovery_window == timedelta(seconds=60)
        assert options.recover_dependent_associations is True
        assert options.dependent_destroy_paranoid_only is False
        assert options.double_tap_destroys_fully is True

    def test_explicit_values_win(self):
        config = ParanoidConfig()

        options = ParanoidOptions(
            column="removed",
            column_type="boolean",
            recover_dependent_associations=False,
            dependent_recovery_window=timedelta(minutes=5),
        ).resolve(config)

        assert options.column == "removed"
        assert options.column_type is ColumnType.BOOLEAN
        assert options.recover_dependent_associations is False
        assert options.dependent_recovery_window == timedelta(minutes=5)

    def test_policy_from_options(self):
        options = ParanoidOptions(
            column="status", column_type="string", deleted_value="gone"
        ).resolve(ParanoidConfig())

        policy = options.policy()

        assert policy.column == "status"
        assert policy.is_string
        assert policy.deleted_value == "gone"

    def test_string_options_without_sentinel_fail(self):
        options = ParanoidOptions(column="status", column_type="string")

        with pytest.raises(ParanoidConfigurationError):
            options.resolve(ParanoidConfig()).policy()


class TestParanoidConfig:
    """Test global configuration handling."""

    def test_defaults(self):
        config = ParanoidConfig()

        assert config.default_column == "deleted_at"
        assert config.default_recovery_window == timedelta(minutes=2)
        assert config.log_level == "WARNING"

    def test_invalid_column_name(self):
        with pytest.raises(ValueError) as exc:
            ParanoidConfig(default_column="deleted at")

        assert "not a valid identifier" in str(exc.value)

    def test_log_level_normalized(self):
        assert ParanoidConfig(log_level="debug").log_level == "DEBUG"

        with pytest.raises(ValueError):
            ParanoidConfig(log_level="chatty")

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("PARANOID_DEFAULT_COLUMN", "removed_at")
        monkeypatch.setenv("PARANOID_DEFAULT_RECOVERY_WINDOW_SECONDS", "300")
        monkeypatch.setenv("PARANOID_DOUBLE_TAP_DESTROYS_FULLY", "false")
        monkeypatch.setenv("PARANOID_DEFAULT_COLUMN_TYPE", "boolean")

        config = ParanoidConfig.from_env()

        assert config.default_column == "removed_at"
        assert config.default_recovery_window_seconds == 300
        assert config.double_tap_destroys_fully is False
        assert config.default_column_type is ColumnType.BOOLEAN

    def test_configure_updates_global(self, restore_config):
        updated = configure(default_recovery_window_seconds=30)

        assert updated.default_recovery_window_seconds == 30
        assert get_config().default_recovery_window == timedelta(seconds=30)
        assert ParanoidOptions().resolve().dependent_recovery_window == timedelta(
            seconds=30
        )
