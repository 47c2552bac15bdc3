"""配置模块测试

测试 Settings 默认值、环境变量前缀以及 YAML 配置加载。
"""

import pytest

from yorder.config import (
    AppSettings,
    ConfigLoader,
    DatabaseSettings,
    LoggingSettings,
    OrderingSettings,
    load_yaml_config,
)


YAML_CONTENT = """
database:
  url: "sqlite:///test.db"
  pool_size: 3

logging:
  level: "DEBUG"
  file_max_bytes: "2MB"

ordering:
  lock_timeout: 2.5
"""


@pytest.fixture(autouse=True)
def clear_config_cache():
    ConfigLoader.clear_cache()
    yield
    ConfigLoader.clear_cache()


class TestSettings:
    """Settings 类测试"""

    def test_ordering_defaults(self):
        settings = OrderingSettings()

        assert settings.field_name == "order"
        assert settings.lock_timeout == 10.0
        assert settings.check_integrity_after_write is False

    def test_ordering_env_prefix(self, monkeypatch):
        monkeypatch.setenv("YORDER_ORDER_LOCK_TIMEOUT", "3")
        monkeypatch.setenv("YORDER_ORDER_CHECK_INTEGRITY_AFTER_WRITE", "true")

        settings = OrderingSettings()

        assert settings.lock_timeout == 3.0
        assert settings.check_integrity_after_write is True

    def test_database_env_prefix(self, monkeypatch):
        monkeypatch.setenv("YORDER_DB_URL", "sqlite:///env.db")
        assert DatabaseSettings().url == "sqlite:///env.db"

    @pytest.mark.parametrize(
        "size, expected",
        [("10MB", 10 * 1024 * 1024), ("512KB", 512 * 1024), ("1GB", 1024 ** 3)],
    )
    def test_parsed_file_max_bytes(self, size, expected):
        assert LoggingSettings(file_max_bytes=size).parsed_file_max_bytes == expected

    def test_app_settings_sections(self):
        settings = AppSettings()

        assert isinstance(settings.database, DatabaseSettings)
        assert isinstance(settings.logging, LoggingSettings)
        assert isinstance(settings.ordering, OrderingSettings)


class TestConfigLoader:
    """YAML 加载测试"""

    def test_load_returns_copy(self, temp_file):
        path = temp_file("config/loader.yaml", YAML_CONTENT)

        config = ConfigLoader.load(path)
        config["database"] = None

        assert ConfigLoader.load(path)["database"]["pool_size"] == 3

    def test_missing_file(self, temp_dir):
        with pytest.raises(FileNotFoundError):
            ConfigLoader.load("missing.yaml", base_dir=temp_dir)

    def test_reload_reads_file_again(self, temp_file):
        path = temp_file("config/reload.yaml", "ordering:\n  lock_timeout: 1\n")
        assert ConfigLoader.load(path)["ordering"]["lock_timeout"] == 1

        with open(path, "w", encoding="utf-8") as f:
            f.write("ordering:\n  lock_timeout: 7\n")

        assert ConfigLoader.load(path)["ordering"]["lock_timeout"] == 1
        assert ConfigLoader.reload(path)["ordering"]["lock_timeout"] == 7

    def test_load_yaml_config(self, temp_file):
        path = temp_file("config/settings.yaml", YAML_CONTENT)

        settings = load_yaml_config(path, AppSettings)

        assert settings.database.url == "sqlite:///test.db"
        assert settings.database.pool_size == 3
        assert settings.logging.level == "DEBUG"
        assert settings.logging.parsed_file_max_bytes == 2 * 1024 * 1024
        assert settings.ordering.lock_timeout == 2.5
        assert settings.ordering.field_name == "order"

    def test_env_fills_keys_missing_from_yaml(self, temp_file, monkeypatch):
        path = temp_file("config/partial.yaml", YAML_CONTENT)
        monkeypatch.setenv("YORDER_ORDER_CHECK_INTEGRITY_AFTER_WRITE", "true")
        monkeypatch.setenv("YORDER_ORDER_LOCK_TIMEOUT", "99")

        settings = load_yaml_config(path, AppSettings)

        assert settings.ordering.check_integrity_after_write is True
        assert settings.ordering.lock_timeout == 2.5

    def test_overrides(self, temp_file):
        path = temp_file("config/override.yaml", YAML_CONTENT)

        settings = load_yaml_config(path, AppSettings, ordering={"lock_timeout": 1})

        assert settings.ordering.lock_timeout == 1.0
