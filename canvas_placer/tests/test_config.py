"""Tests for placer configuration loading, overrides and validation."""

from __future__ import annotations

from pathlib import Path

import pytest
import yaml

from canvas_placer.configs.loader import (
    DEFAULT_CONFIG_PATH,
    ConfigError,
    PlacerConfig,
    RetryConfig,
    apply_env_overrides,
    load_config,
)
from canvas_placer.identities.pool import Identity


def _write_config(tmp_path: Path, **changes) -> Path:
    """Copy the bundled YAML with top-level sections replaced."""
    with open(DEFAULT_CONFIG_PATH, encoding="utf-8") as f:
        data = yaml.safe_load(f)
    for section, value in changes.items():
        if value is None:
            data.pop(section, None)
        elif isinstance(value, dict) and isinstance(data.get(section), dict):
            data[section] = {**data[section], **value}
        else:
            data[section] = value
    path = tmp_path / "placer.yaml"
    path.write_text(yaml.safe_dump(data), encoding="utf-8")
    return path


# ---------------------------------------------------------------------------
# Bundled defaults
# ---------------------------------------------------------------------------


class TestDefaults:
    def test_loads(self, base_config: PlacerConfig) -> None:
        assert base_config.image.origin == (527, 346)
        assert base_config.image.strategy == "top-to-bottom"
        assert base_config.agents.count == 3
        assert base_config.agents.wait is True
        assert base_config.browser.headless is False
        assert base_config.browser.viewport == (860, 680)

    def test_timing_in_seconds(self, base_config: PlacerConfig) -> None:
        t = base_config.timing
        assert t.action_delay_s == pytest.approx(0.2)
        assert t.key_delay_s == pytest.approx(0.2)
        assert t.settle_s == pytest.approx(30.0)
        assert t.post_check_s == pytest.approx(3.0)

    def test_retry_unbounded(self, base_config: PlacerConfig) -> None:
        assert base_config.retry.unbounded

    def test_palette(self, base_config: PlacerConfig) -> None:
        assert len(base_config.palette) == 25
        assert base_config.palette.entry_for("p").hex == "#573400"

    def test_keys(self, base_config: PlacerConfig) -> None:
        assert base_config.keys.left == "ArrowLeft"
        assert base_config.keys.commit == "Enter"

    def test_canvas_url(self, base_config: PlacerConfig) -> None:
        url = base_config.browser.canvas_url(base_config.image.origin)
        assert url == "https://rplace.live/?x=527&y=346"

    def test_no_identities(self, base_config: PlacerConfig) -> None:
        assert base_config.identities == ()


# ---------------------------------------------------------------------------
# Loading custom files
# ---------------------------------------------------------------------------


class TestLoadConfig:
    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "nope.yaml")

    def test_empty_file(self, tmp_path: Path) -> None:
        p = tmp_path / "empty.yaml"
        p.write_text("", encoding="utf-8")
        with pytest.raises(ConfigError, match="Empty"):
            load_config(p)

    def test_missing_section(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError, match="Missing required"):
            load_config(_write_config(tmp_path, timing=None))

    def test_optional_sections(self, tmp_path: Path) -> None:
        cfg = load_config(_write_config(tmp_path, retry=None, keys=None, logging=None))
        assert cfg.retry == RetryConfig()
        assert cfg.keys.up == "ArrowUp"
        assert cfg.logging.level == "INFO"

    def test_negative_delay(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError, match="key_delay_s"):
            load_config(_write_config(tmp_path, timing={"key_delay_s": -1}))

    def test_zero_agents(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError, match="agents.count"):
            load_config(_write_config(tmp_path, agents={"count": 0}))

    def test_bad_origin(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError, match="image.origin"):
            load_config(_write_config(tmp_path, image={"origin": [1, 2, 3]}))

    def test_bounded_retry(self, tmp_path: Path) -> None:
        cfg = load_config(_write_config(tmp_path, retry={"max_attempts": 5, "backoff": 2}))
        assert cfg.retry.max_attempts == 5
        assert not cfg.retry.unbounded

    def test_zero_attempts_rejected(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError, match="max_attempts"):
            load_config(_write_config(tmp_path, retry={"max_attempts": 0}))

    def test_duplicate_palette_symbol(self, tmp_path: Path) -> None:
        palette = [
            {"hex": "#000000", "symbol": "1"},
            {"hex": "#FFFFFF", "symbol": "1"},
        ]
        with pytest.raises(ConfigError, match="duplicate"):
            load_config(_write_config(tmp_path, palette=palette))

    def test_bad_palette_entry(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError, match="palette entry"):
            load_config(_write_config(tmp_path, palette=[{"hex": "#00"}]))

    def test_unknown_strategy_warns(
        self, tmp_path: Path, caplog: pytest.LogCaptureFixture,
    ) -> None:
        cfg = load_config(_write_config(tmp_path, image={"strategy": "spiral"}))
        assert cfg.image.strategy == "spiral"
        assert "spiral" in caplog.text

    def test_bad_log_level(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError, match="logging.level"):
            load_config(_write_config(tmp_path, logging={"level": "CHATTY"}))

    def test_identities_inline_and_file(self, tmp_path: Path) -> None:
        (tmp_path / "proxies.txt").write_text("c:3:w:z\n", encoding="utf-8")
        cfg = load_config(_write_config(
            tmp_path,
            identities=["a:1:u:p", {"host": "b", "port": 2, "principal": "v"}],
            identities_file="proxies.txt",
        ))
        assert [i.host for i in cfg.identities] == ["a", "b", "c"]
        assert cfg.identities[1].secret == ""

    def test_bad_identity(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError, match="identity"):
            load_config(_write_config(tmp_path, identities=["nonsense"]))

    def test_missing_identities_file(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError, match="not found"):
            load_config(_write_config(tmp_path, identities_file="missing.txt"))


# ---------------------------------------------------------------------------
# Overrides
# ---------------------------------------------------------------------------


class TestOverrides:
    def test_flat_overrides(self, base_config: PlacerConfig) -> None:
        cfg = base_config.with_overrides(
            image_path="x.png",
            origin=(1, 2),
            strategy="left-to-right",
            agents=5,
            headless=True,
            wait=False,
            max_attempts=4,
        )
        assert cfg.image.path == "x.png"
        assert cfg.image.origin == (1, 2)
        assert cfg.image.strategy == "left-to-right"
        assert cfg.agents.count == 5
        assert cfg.browser.headless is True
        assert cfg.agents.wait is False
        assert cfg.retry.max_attempts == 4
        # base config untouched
        assert base_config.agents.count == 3

    def test_none_ignored(self, base_config: PlacerConfig) -> None:
        assert base_config.with_overrides(agents=None, strategy=None) == base_config

    def test_unknown_key(self, base_config: PlacerConfig) -> None:
        with pytest.raises(ConfigError, match="Unknown override"):
            base_config.with_overrides(colour="red")

    def test_revalidated(self, base_config: PlacerConfig) -> None:
        with pytest.raises(ConfigError, match="agents.count"):
            base_config.with_overrides(agents=0)

    def test_identities(self, base_config: PlacerConfig) -> None:
        cfg = base_config.with_overrides(identities=[Identity("h", 1)])
        assert cfg.identities == (Identity("h", 1),)


class TestEnvOverrides:
    def test_legacy_variables(self, base_config: PlacerConfig) -> None:
        env = {
            "IMAGE_PATH": "art.png",
            "START_X": "10",
            "STRATEGY": "right-to-left",
            "ACTION_DELAY_MS": "500",
            "KEY_DELAY_MS": "50",
            "INITIAL_WAIT_MS": "1000",
            "BROWSERS": "2",
            "HEADLESS": "true",
        }
        cfg = apply_env_overrides(base_config, env)
        assert cfg.image.path == "art.png"
        assert cfg.image.origin == (10, 346)
        assert cfg.image.strategy == "right-to-left"
        assert cfg.timing.action_delay_s == pytest.approx(0.5)
        assert cfg.timing.key_delay_s == pytest.approx(0.05)
        assert cfg.timing.settle_s == pytest.approx(1.0)
        assert cfg.agents.count == 2
        assert cfg.browser.headless is True

    def test_headless_only_true(self, base_config: PlacerConfig) -> None:
        cfg = apply_env_overrides(base_config, {"HEADLESS": "yes"})
        assert cfg.browser.headless is False

    def test_empty_env(self, base_config: PlacerConfig) -> None:
        assert apply_env_overrides(base_config, {}) is base_config

    def test_bad_number(self, base_config: PlacerConfig) -> None:
        with pytest.raises(ConfigError, match="environment"):
            apply_env_overrides(base_config, {"BROWSERS": "many"})


# ---------------------------------------------------------------------------
# Retry policy
# ---------------------------------------------------------------------------


class TestRetryConfig:
    def test_delay_growth_and_cap(self) -> None:
        r = RetryConfig(backoff=2.0, max_delay_s=1.0)
        assert r.delay_for(1, 0.2) == pytest.approx(0.2)
        assert r.delay_for(2, 0.2) == pytest.approx(0.4)
        assert r.delay_for(4, 0.2) == pytest.approx(1.0)

    def test_exhausted(self) -> None:
        assert not RetryConfig().exhausted(10_000)
        assert not RetryConfig(max_attempts=3).exhausted(2)
        assert RetryConfig(max_attempts=3).exhausted(3)
