"""
Tests for config.py - Settings loading.

Covers:
- Reading the db and server namespaces from a settings file
- Environment overrides
- ConfigError for missing keys, bad values and malformed files
- Property: valid settings load exactly; any missing required key fails
"""
import json
import string

import pytest
from hypothesis import given, settings, strategies as st


def _toml(sections):
    """Render nested dicts as TOML (JSON strings are valid TOML basic strings)."""
    lines = []
    for name, values in sections.items():
        lines.append(f"[{name}]")
        for key, value in values.items():
            lines.append(f"{key} = {json.dumps(value)}")
        lines.append("")
    return "\n".join(lines)


# =============================================================================
# Loading Tests
# =============================================================================

class TestConfigLoaderLoad:
    """Tests for ConfigLoader.load()."""

    def test_loads_db_namespace(self, settings_file, sample_settings):
        from config import ConfigLoader

        path = settings_file(_toml(sample_settings))
        config = ConfigLoader(path=path, environ={}).load()

        assert config.jdbc_url == "jdbc:postgresql://db.internal:5432/brickstore"
        assert config.user == "brickstore"
        assert config.password == "s3cret"

    def test_config_is_immutable(self, settings_file, sample_settings):
        from pydantic import ValidationError

        from config import ConfigLoader

        config = ConfigLoader(path=settings_file(_toml(sample_settings)), environ={}).load()

        with pytest.raises(ValidationError):
            config.user = "someone-else"

    def test_environment_overrides_file(self, settings_file, sample_settings):
        from config import ConfigLoader

        path = settings_file(_toml(sample_settings))
        config = ConfigLoader(
            path=path,
            environ={"DB_USER": "override", "DB_JDBC_URL": "sqlite:///x.db"},
        ).load()

        assert config.user == "override"
        assert config.jdbc_url == "sqlite:///x.db"
        assert config.password == "s3cret"

    def test_path_from_environment(self, settings_file, sample_settings):
        from config import ConfigLoader

        path = settings_file(_toml(sample_settings))
        loader = ConfigLoader(environ={"BRICKSTORE_CONFIG": str(path)})

        assert loader.path == path
        assert loader.load().user == "brickstore"

    def test_environment_only_without_file(self, tmp_path, monkeypatch):
        from config import ConfigLoader

        monkeypatch.chdir(tmp_path)
        config = ConfigLoader(environ={
            "DB_JDBC_URL": "jdbc:postgresql://h/db",
            "DB_USER": "u",
            "DB_PASSWORD": "p",
        }).load()

        assert config.jdbc_url == "jdbc:postgresql://h/db"

    def test_password_masked_in_dict(self, settings_file, sample_settings):
        from config import ConfigLoader

        config = ConfigLoader(path=settings_file(_toml(sample_settings)), environ={}).load()

        assert config.to_dict()["password"] == "***"
        assert "s3cret" not in str(config.to_dict())


class TestConfigLoaderErrors:
    """Tests for ConfigError reporting."""

    @pytest.mark.parametrize("missing", ["jdbcUrl", "user", "password"])
    def test_missing_required_key(self, settings_file, sample_settings, missing):
        from config import ConfigLoader
        from core.errors import ConfigError

        del sample_settings["db"][missing]
        path = settings_file(_toml(sample_settings))

        with pytest.raises(ConfigError) as exc_info:
            ConfigLoader(path=path, environ={}).load()

        assert exc_info.value.config_key == f"db.{missing}"
        assert "Missing required setting" in exc_info.value.message

    def test_missing_db_namespace(self, settings_file):
        from config import ConfigLoader
        from core.errors import ConfigError

        path = settings_file('[server]\nport = 8080\n')

        with pytest.raises(ConfigError):
            ConfigLoader(path=path, environ={}).load()

    def test_explicit_file_not_found(self, tmp_path):
        from config import ConfigLoader
        from core.errors import ConfigError

        with pytest.raises(ConfigError) as exc_info:
            ConfigLoader(path=tmp_path / "nope.toml", environ={}).load()

        assert "not found" in exc_info.value.message

    def test_malformed_file(self, settings_file):
        from config import ConfigLoader
        from core.errors import ConfigError

        path = settings_file("[db\njdbcUrl = ")

        with pytest.raises(ConfigError) as exc_info:
            ConfigLoader(path=path, environ={}).load()

        assert "Malformed" in exc_info.value.message

    def test_namespace_must_be_table(self, settings_file):
        from config import ConfigLoader
        from core.errors import ConfigError

        path = settings_file('db = "postgres"\n')

        with pytest.raises(ConfigError) as exc_info:
            ConfigLoader(path=path, environ={}).load()

        assert exc_info.value.config_key == "db"

    def test_config_error_is_fatal(self):
        from core.errors import ConfigError, ErrorSeverity, StartupError

        error = ConfigError("bad")

        assert isinstance(error, StartupError)
        assert error.severity is ErrorSeverity.FATAL


class TestServerConfig:
    """Tests for ConfigLoader.load_server()."""

    def test_defaults(self, settings_file, sample_settings):
        from config import ConfigLoader

        del sample_settings["server"]
        server = ConfigLoader(path=settings_file(_toml(sample_settings)), environ={}).load_server()

        assert server.host == "0.0.0.0"
        assert server.port == 8080
        assert server.shutdown_timeout == 5.0

    def test_reads_server_namespace(self, settings_file, sample_settings):
        from config import ConfigLoader

        server = ConfigLoader(path=settings_file(_toml(sample_settings)), environ={}).load_server()

        assert server.host == "127.0.0.1"
        assert server.port == 9090
        assert server.shutdown_timeout == 2.0

    def test_port_from_environment_is_coerced(self, settings_file, sample_settings):
        from config import ConfigLoader

        server = ConfigLoader(
            path=settings_file(_toml(sample_settings)),
            environ={"SERVER_PORT": "7000"},
        ).load_server()

        assert server.port == 7000

    @pytest.mark.parametrize("port", ["eighty", "-1", "70000"])
    def test_invalid_port(self, settings_file, sample_settings, port):
        from config import ConfigLoader
        from core.errors import ConfigError

        path = settings_file(_toml(sample_settings))

        with pytest.raises(ConfigError) as exc_info:
            ConfigLoader(path=path, environ={"SERVER_PORT": port}).load_server()

        assert exc_info.value.config_key == "server.port"
        assert "Invalid value" in exc_info.value.message

    def test_load_app_aggregates(self, settings_file, sample_settings):
        from config import ConfigLoader

        app_config = ConfigLoader(path=settings_file(_toml(sample_settings)), environ={}).load_app()
        as_dict = app_config.to_dict()

        assert as_dict["db"]["user"] == "brickstore"
        assert as_dict["server"]["port"] == 9090
        assert "level" in as_dict["logging"]


# =============================================================================
# Property Tests
# =============================================================================

values = st.text(alphabet=string.ascii_letters + string.digits + "-_.:/@", min_size=1, max_size=40)
passwords = st.text(alphabet=string.ascii_letters + string.digits + "!#$%&*+-=?^_~", max_size=40)


class TestConfigLoaderProperties:
    """Property-based tests over generated settings."""

    @given(jdbc_url=values, user=values, password=passwords)
    @settings(max_examples=50, deadline=None)
    def test_valid_settings_load_exactly(self, tmp_path_factory, jdbc_url, user, password):
        from config import ConfigLoader

        path = tmp_path_factory.mktemp("settings") / "application.toml"
        path.write_text(_toml({"db": {"jdbcUrl": jdbc_url, "user": user, "password": password}}))

        config = ConfigLoader(path=path, environ={}).load()

        assert (config.jdbc_url, config.user, config.password) == (jdbc_url, user, password)

    @given(
        jdbc_url=values,
        user=values,
        password=passwords,
        missing=st.sets(st.sampled_from(["jdbcUrl", "user", "password"]), min_size=1),
    )
    @settings(max_examples=50, deadline=None)
    def test_missing_keys_always_fail(self, tmp_path_factory, jdbc_url, user, password, missing):
        from config import ConfigLoader
        from core.errors import ConfigError

        db = {"jdbcUrl": jdbc_url, "user": user, "password": password}
        for key in missing:
            del db[key]
        path = tmp_path_factory.mktemp("settings") / "application.toml"
        path.write_text(_toml({"db": db}))

        with pytest.raises(ConfigError):
            ConfigLoader(path=path, environ={}).load()
