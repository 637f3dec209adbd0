import tempfile
import unittest
from pathlib import Path

from visitor_beacon.config import CONFIG_ENV, DEFAULT_ENDPOINT, config_from_mapping, load_config
from visitor_beacon.poller import CountMethod
from visitor_beacon.transport import DeliveryMode


class TestPresets(unittest.TestCase):
    def test_defaults_are_observable(self):
        cfg = load_config(environ={})
        self.assertEqual(cfg.endpoint, DEFAULT_ENDPOINT)
        self.assertIs(cfg.delivery_mode, DeliveryMode.OBSERVABLE)
        self.assertIs(cfg.count_method, CountMethod.GET)
        self.assertIsNone(cfg.fast_refresh_interval_s)
        self.assertIsNone(cfg.early_refresh_delay_s)
        self.assertEqual(cfg.live_count_interval_s, 30)
        self.assertEqual(cfg.heartbeat_interval_s, 60)
        self.assertEqual(cfg.request_timeout_s, 10.0)

    def test_fire_and_forget(self):
        cfg = config_from_mapping({"preset": "fire_and_forget"})
        self.assertIs(cfg.delivery_mode, DeliveryMode.BEST_EFFORT)
        self.assertIs(cfg.count_method, CountMethod.POST)
        self.assertEqual(cfg.fast_refresh_interval_s, 10.0)
        self.assertTrue(cfg.refresh_on_return)
        self.assertEqual(cfg.early_refresh_delay_s, 0.5)
        self.assertEqual(cfg.return_refresh_delay_s, 1.0)

    def test_keys_override_preset(self):
        cfg = config_from_mapping({"preset": "fire_and_forget", "count_method": "GET", "refresh_on_return": "no"})
        self.assertIs(cfg.count_method, CountMethod.GET)
        self.assertFalse(cfg.refresh_on_return)


class TestLoadConfig(unittest.TestCase):
    def write(self, tmp, text):
        p = Path(tmp) / "beacon.yaml"
        p.write_text(text, encoding="utf-8")
        return p

    def test_yaml_file(self):
        with tempfile.TemporaryDirectory() as tmp:
            p = self.write(
                tmp,
                "preset: fire_and_forget\n"
                "endpoint: https://collector.example.com/exec\n"
                "heartbeat_interval_s: 45\n"
                "scroll_thresholds: [100, 50]\n",
            )
            cfg = load_config(p, environ={})
        self.assertEqual(cfg.endpoint, "https://collector.example.com/exec")
        self.assertEqual(cfg.heartbeat_interval_s, 45.0)
        self.assertEqual(cfg.scroll_thresholds, (50, 100))
        self.assertIs(cfg.delivery_mode, DeliveryMode.BEST_EFFORT)

    def test_path_from_environment_and_overrides(self):
        with tempfile.TemporaryDirectory() as tmp:
            p = self.write(tmp, "delivery_mode: observable\nrequest_timeout_s: 4\n")
            cfg = load_config(
                environ={
                    CONFIG_ENV: str(p),
                    "VB_DELIVERY_MODE": "best_effort",
                    "VB_TIMEOUT_S": "2.5",
                    "VB_ENDPOINT": " ",
                }
            )
        self.assertIs(cfg.delivery_mode, DeliveryMode.BEST_EFFORT)
        self.assertEqual(cfg.request_timeout_s, 2.5)
        self.assertEqual(cfg.endpoint, DEFAULT_ENDPOINT)

    def test_empty_file_is_defaults(self):
        with tempfile.TemporaryDirectory() as tmp:
            cfg = load_config(self.write(tmp, ""), environ={})
        self.assertIs(cfg.delivery_mode, DeliveryMode.OBSERVABLE)

    def test_missing_file(self):
        with self.assertRaises(FileNotFoundError):
            load_config("/nonexistent/beacon.yaml", environ={})

    def test_non_mapping_root(self):
        with tempfile.TemporaryDirectory() as tmp:
            with self.assertRaises(ValueError):
                load_config(self.write(tmp, "- a\n- b\n"), environ={})


class TestValidation(unittest.TestCase):
    def test_rejects_bad_values(self):
        bad = [
            {"preset": "turbo"},
            {"endpoint": "ftp://collector.example.com"},
            {"delivery_mode": "sometimes"},
            {"count_method": "put"},
            {"heartbeat_interval_s": 0},
            {"live_count_interval_s": "soon"},
            {"initial_refresh_delay_s": -1},
            {"scroll_thresholds": []},
            {"time_thresholds_s": ["ten"]},
            {"click_sample_every": -5},
            {"colour": "blue"},
        ]
        for raw in bad:
            with self.subTest(raw=raw):
                with self.assertRaises(ValueError):
                    config_from_mapping(raw)

    def test_sample_sizes_must_be_whole(self):
        for raw in ({"click_sample_every": 0.5}, {"scroll_sample_every": 2.5}, {"shadow_log_limit": "3.0"}, {"click_sample_every": True}):
            with self.subTest(raw=raw):
                with self.assertRaises(ValueError):
                    config_from_mapping(raw)
        cfg = config_from_mapping({"click_sample_every": 3.0, "scroll_sample_every": "7"})
        self.assertEqual((cfg.click_sample_every, cfg.scroll_sample_every), (3, 7))

    def test_nullable_timeout(self):
        self.assertIsNone(config_from_mapping({"request_timeout_s": None}).request_timeout_s)


if __name__ == "__main__":
    unittest.main()
