"""Tests for the command-line entry point (no browsers are launched)."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock, patch

import numpy as np
import pytest
from PIL import Image

from canvas_placer.scripts import run_placement
from canvas_placer.session.executor import ExecutorState
from canvas_placer.session.orchestrator import AgentResult


@pytest.fixture(autouse=True)
def _no_logging_setup(monkeypatch):
    monkeypatch.setattr(run_placement, "setup_logging", lambda **kw: [])


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for var in (
        "IMAGE_PATH", "START_X", "START_Y", "STRATEGY", "ACTION_DELAY_MS",
        "KEY_DELAY_MS", "INITIAL_WAIT_MS", "BROWSERS", "HEADLESS",
    ):
        monkeypatch.delenv(var, raising=False)


@pytest.fixture()
def image_file(tmp_path: Path) -> Path:
    rgba = np.zeros((2, 2, 4), dtype=np.uint8)
    rgba[0, 0] = (0, 0, 0, 255)
    rgba[0, 1] = (255, 255, 255, 255)
    rgba[1, 1] = (0, 0, 0, 255)
    path = tmp_path / "art.png"
    Image.fromarray(rgba).save(path)
    return path


@pytest.fixture()
def identity_file(tmp_path: Path) -> Path:
    path = tmp_path / "proxies.txt"
    path.write_text("10.0.0.1:8001:u:p\n10.0.0.2:8002:v:q\n", encoding="utf-8")
    return path


class TestParser:
    def test_defaults_are_unset(self) -> None:
        args = run_placement.build_parser().parse_args([])
        assert args.image is None
        assert args.headless is None
        assert args.wait is None
        assert args.check is False

    def test_headless_flags_exclusive(self) -> None:
        with pytest.raises(SystemExit):
            run_placement.build_parser().parse_args(["--headless", "--headful"])

    def test_resolve_config(self, image_file: Path, identity_file: Path) -> None:
        args = run_placement.build_parser().parse_args([
            "--image", str(image_file),
            "--origin", "10", "20",
            "--agents", "2",
            "--headless",
            "--no-wait",
            "--identities", str(identity_file),
            "--key-delay", "0.05",
        ])
        cfg = run_placement.resolve_config(args)
        assert cfg.image.path == str(image_file)
        assert cfg.image.origin == (10, 20)
        assert cfg.agents.count == 2
        assert cfg.browser.headless is True
        assert cfg.agents.wait is False
        assert len(cfg.identities) == 2
        assert cfg.timing.key_delay_s == pytest.approx(0.05)

    def test_cli_beats_env(self, monkeypatch, image_file: Path) -> None:
        monkeypatch.setenv("BROWSERS", "7")
        monkeypatch.setenv("START_Y", "99")
        args = run_placement.build_parser().parse_args(["--agents", "2"])
        cfg = run_placement.resolve_config(args)
        assert cfg.agents.count == 2
        assert cfg.image.origin_y == 99


class TestMain:
    def test_check_does_not_launch(self, image_file: Path, tmp_path: Path) -> None:
        preview = tmp_path / "out" / "preview.png"
        with patch.object(run_placement, "AgentOrchestrator") as orch:
            code = run_placement.main([
                "--image", str(image_file), "--check", "--preview", str(preview),
            ])
        assert code == 0
        orch.assert_not_called()
        assert preview.exists()

    def test_missing_image_exits_1(self, tmp_path: Path) -> None:
        code = run_placement.main(["--image", str(tmp_path / "none.png"), "--check"])
        assert code == 1

    def test_bad_config_exits_1(self, tmp_path: Path) -> None:
        code = run_placement.main(["--config", str(tmp_path / "missing.yaml")])
        assert code == 1

    def test_invalid_override_exits_1(self, image_file: Path) -> None:
        code = run_placement.main(["--image", str(image_file), "--agents", "0"])
        assert code == 1

    def test_no_identities_exits_1(self, image_file: Path) -> None:
        with patch.object(run_placement, "AgentOrchestrator") as orch:
            code = run_placement.main(["--image", str(image_file)])
        assert code == 1
        orch.assert_not_called()

    def test_run_reports_results(self, image_file: Path, identity_file: Path) -> None:
        fake = MagicMock()
        fake.run.return_value = [
            AgentResult(0, None, 2, placed=2, state=ExecutorState.DONE),
            AgentResult(1, None, 1, placed=0, state=ExecutorState.FAILED, error="x"),
        ]
        with patch.object(run_placement, "AgentOrchestrator", return_value=fake) as orch:
            code = run_placement.main([
                "--image", str(image_file),
                "--identities", str(identity_file),
                "--agents", "2",
            ])
        # Agent failures do not change the exit status
        assert code == 0
        orch.assert_called_once()
        chunks = fake.run.call_args[0][0]
        assert [len(c) for c in chunks] == [2, 1]
