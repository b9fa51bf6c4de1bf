"""
Tests for configuration loading and the store adapter's key layout.
"""

import logging

from kvlife.core.config import KvlifeConfig, get_config, set_config
from kvlife.store.client import StoreClient
from kvlife.utils.logger import get_logger


class TestKvlifeConfig:
    def test_missing_file_uses_defaults(self, tmp_path, monkeypatch):
        for var in ("UPSTASH_REDIS_URL", "REDIS_HOST", "REDIS_PORT", "REDIS_DB"):
            monkeypatch.delenv(var, raising=False)
        cfg = KvlifeConfig.from_yaml(tmp_path / "missing.yaml")
        assert cfg == KvlifeConfig()

    def test_yaml_values(self, tmp_path, monkeypatch):
        for var in ("UPSTASH_REDIS_URL", "REDIS_HOST", "REDIS_PORT", "REDIS_DB"):
            monkeypatch.delenv(var, raising=False)
        path = tmp_path / "kvlife.yaml"
        path.write_text(
            "redis:\n"
            "  host: cache.internal\n"
            "  db: 3\n"
            "reaper:\n"
            "  session_limit: 500\n"
            "  idle_interval: 0.5\n"
            "scheduler:\n"
            "  poll_interval: 0.02\n"
            "shutdown_timeout: 9\n"
        )
        cfg = KvlifeConfig.from_yaml(path)
        assert cfg.redis_host == "cache.internal"
        assert cfg.redis_db == 3
        assert cfg.session_limit == 500
        assert cfg.reaper_idle_interval == 0.5
        assert cfg.scheduler_poll_interval == 0.02
        assert cfg.shutdown_timeout == 9.0
        assert cfg.reaper_batch_size == 100

    def test_environment_overrides_yaml(self, tmp_path, monkeypatch):
        path = tmp_path / "kvlife.yaml"
        path.write_text("redis:\n  host: from-yaml\n  port: 6380\n")
        monkeypatch.setenv("REDIS_HOST", "from-env")
        monkeypatch.setenv("UPSTASH_REDIS_URL", "rediss://example.upstash.io:6379")
        cfg = KvlifeConfig.from_yaml(path)
        assert cfg.redis_host == "from-env"
        assert cfg.redis_port == 6380
        assert cfg.redis_url == "rediss://example.upstash.io:6379"

    def test_set_config(self):
        cfg = KvlifeConfig(session_limit=7)
        set_config(cfg)
        try:
            assert get_config() is cfg
        finally:
            set_config(None)


class TestStoreClientKeys:
    def test_default_keys(self):
        store = StoreClient(client=object())
        assert store.login_key() == "login:"
        assert store.recent_key() == "recent:"
        assert store.viewed_key("t") == "viewed:t"
        assert store.popularity_key() == "viewed:"
        assert store.cart_key("t") == "cart:t"
        assert store.schedule_key() == "schedule:"
        assert store.delay_key() == "delay:"
        assert store.row_key("itemX") == "inv:itemX"
        assert store.request_key("abc") == "cache:abc"
        assert store.article_key("1") == "article:1"
        assert store.voted_key("1") == "voted:1"
        assert store.group_key("python") == "group:python"

    def test_namespace_prefix(self):
        store = StoreClient(client=object(), namespace="shop")
        assert store.recent_key() == "shop:recent:"
        assert store.cart_key("t") == "shop:cart:t"

    def test_builds_local_client_from_config(self):
        store = StoreClient(config=KvlifeConfig(redis_host="localhost", redis_port=6390, redis_db=4))
        kwargs = store.client.connection_pool.connection_kwargs
        assert kwargs["port"] == 6390
        assert kwargs["db"] == 4

    def test_ping_unreachable(self):
        store = StoreClient(config=KvlifeConfig(redis_port=1, socket_timeout=0.2))
        assert store.ping() is False


class TestLogger:
    def test_child_loggers_share_kvlife_handler(self):
        assert get_logger("workers.reaper").name == "kvlife.workers.reaper"
        assert get_logger() is logging.getLogger("kvlife")
        assert logging.getLogger("kvlife").propagate is False

    def test_format_names_the_loop_thread(self):
        handler = logging.getLogger("kvlife").handlers[0]
        record = logging.LogRecord("kvlife.workers", logging.INFO, __file__, 1, "%s started", ("cart-reaper",), None)
        record.threadName = "cart-reaper"
        line = handler.format(record)
        assert "kvlife.workers [cart-reaper] - INFO - cart-reaper started" in line
