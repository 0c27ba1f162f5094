"""配置加载测试 -- 环境变量覆盖与非法值降级"""

from skilllance.core.config import DEV_ANON_SALT, get_db_path, load_engine_settings


class TestLoadEngineSettings:
    def test_defaults(self, monkeypatch):
        for name in (
            "SKILLLANCE_ANON_SALT",
            "SKILLLANCE_REQUEST_TTL_HOURS",
            "SKILLLANCE_CREATE_LIMIT",
            "SKILLLANCE_RATELIMIT_ENABLED",
        ):
            monkeypatch.delenv(name, raising=False)

        settings = load_engine_settings()
        assert settings.uses_dev_salt
        assert settings.anon_salt.get_secret_value() == DEV_ANON_SALT
        assert settings.request_ttl_hours == 24
        assert settings.max_request_ttl_hours == 168
        assert (settings.create_limit.limit, settings.create_limit.window_seconds) == (3, 3600)
        assert (settings.read_limit.limit, settings.read_limit.window_seconds) == (100, 900)
        assert settings.ratelimit_enabled is True

    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("SKILLLANCE_ANON_SALT", "prod-secret")
        monkeypatch.setenv("SKILLLANCE_REQUEST_TTL_HOURS", "48")
        monkeypatch.setenv("SKILLLANCE_CREATE_LIMIT", "5")
        monkeypatch.setenv("SKILLLANCE_RATELIMIT_ENABLED", "false")
        monkeypatch.setenv("SKILLLANCE_RATELIMIT_STORAGE", "async+memory://")

        settings = load_engine_settings()
        assert not settings.uses_dev_salt
        assert settings.request_ttl_hours == 48
        assert settings.create_limit.limit == 5
        assert settings.ratelimit_enabled is False

    def test_invalid_int_falls_back(self, monkeypatch):
        monkeypatch.setenv("SKILLLANCE_REQUEST_TTL_HOURS", "not-a-number")
        assert load_engine_settings().request_ttl_hours == 24

    def test_salt_is_not_leaked_in_repr(self, monkeypatch):
        monkeypatch.setenv("SKILLLANCE_ANON_SALT", "prod-secret")
        assert "prod-secret" not in repr(load_engine_settings())


def test_db_path_from_data_dir(monkeypatch, tmp_path):
    monkeypatch.delenv("SKILLLANCE_DB_PATH", raising=False)
    monkeypatch.setenv("SKILLLANCE_DATA_DIR", str(tmp_path))
    assert get_db_path() == str(tmp_path / "sqlite" / "skilllance.db")
