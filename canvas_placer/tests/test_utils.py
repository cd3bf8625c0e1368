"""Tests for logging setup and filesystem helpers."""

from __future__ import annotations

import json
import logging
import threading
from pathlib import Path

import numpy as np
import pytest
from PIL import Image

from canvas_placer.utils import fs
from canvas_placer.utils.logging_config import (
    ContextFormatter,
    agent_context,
    get_context,
    pop_context,
    push_context,
    setup_logging,
)


def _record(msg: str = "Placed pixel at (1, 2)") -> logging.LogRecord:
    return logging.LogRecord("canvas_placer.test", logging.INFO, __file__, 1, msg, None, None)


@pytest.fixture(autouse=True)
def _clean_context():
    pop_context()
    yield
    pop_context()


# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------


class TestContextFormatter:
    def test_human_includes_context(self) -> None:
        push_context(app="placer", agent=2)
        line = ContextFormatter().format(_record())
        assert line.endswith("Z INFO     [app=placer agent=2] Placed pixel at (1, 2)")

    def test_human_without_context(self) -> None:
        line = ContextFormatter().format(_record("hi"))
        assert line.endswith("Z INFO     hi")
        assert "[" not in line

    def test_json(self) -> None:
        push_context(agent=3)
        data = json.loads(ContextFormatter(json=True).format(_record("hello")))
        assert data["msg"] == "hello"
        assert data["level"] == "INFO"
        assert data["logger"] == "canvas_placer.test"
        assert data["agent"] == 3


class TestContext:
    def test_push_pop(self) -> None:
        push_context(a=1, b=2)
        pop_context(["a"])
        assert get_context() == {"b": 2}

    def test_agent_context_restores(self) -> None:
        push_context(app="placer")
        with agent_context(agent=4):
            assert get_context() == {"app": "placer", "agent": 4}
        assert get_context() == {"app": "placer"}

    def test_threads_isolated(self) -> None:
        seen: dict[int, dict] = {}

        def worker(n: int) -> None:
            with agent_context(agent=n):
                seen[n] = get_context()

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert all(seen[n]["agent"] == n for n in range(4))
        assert "agent" not in get_context()


class TestSetupLogging:
    def test_file_handler_and_idempotent(self, tmp_path: Path) -> None:
        root = logging.getLogger()
        before = list(root.handlers)
        level = root.level
        log_file = tmp_path / "logs" / "placer.log"
        try:
            setup_logging("DEBUG", str(log_file), to_stderr=False)
            handlers = setup_logging("DEBUG", str(log_file), to_stderr=False)
            assert len(handlers) == 1
            assert len(root.handlers) == len(before) + 1
            logging.getLogger("canvas_placer.test").info("written")
            for h in handlers:
                h.flush()
            assert "written" in log_file.read_text(encoding="utf-8")
        finally:
            for h in root.handlers[:]:
                if h not in before:
                    root.removeHandler(h)
                    h.close()
            root.setLevel(level)


# ---------------------------------------------------------------------------
# Filesystem
# ---------------------------------------------------------------------------


class TestFs:
    def test_load_yaml(self, tmp_path: Path) -> None:
        p = tmp_path / "a.yaml"
        p.write_text("x: 1\n", encoding="utf-8")
        assert fs.load_yaml(p) == {"x": 1}

    def test_load_yaml_not_mapping(self, tmp_path: Path) -> None:
        p = tmp_path / "a.yaml"
        p.write_text("- 1\n- 2\n", encoding="utf-8")
        with pytest.raises(ValueError, match="mapping"):
            fs.load_yaml(p)

    def test_atomic_save_image(self, tmp_path: Path) -> None:
        img = np.zeros((3, 4, 4), dtype=np.uint8)
        img[1, 2] = (255, 0, 0, 255)
        out = tmp_path / "sub" / "preview.png"
        fs.atomic_save_image(img, out)
        assert out.exists()
        assert not out.with_suffix(".png.tmp").exists()
        with Image.open(out) as loaded:
            back = np.asarray(loaded.convert("RGBA"))
        assert np.array_equal(back, img)

    def test_atomic_save_rejects_float(self, tmp_path: Path) -> None:
        with pytest.raises(ValueError, match="uint8"):
            fs.atomic_save_image(np.zeros((2, 2, 3)), tmp_path / "x.png")

    def test_load_rgba_image_grayscale(self, tmp_path: Path) -> None:
        p = tmp_path / "g.png"
        Image.new("L", (2, 3), 128).save(p)
        rgba = fs.load_rgba_image(p)
        assert rgba.shape == (3, 2, 4)
        assert rgba.dtype == np.uint8
        assert (rgba[..., 3] == 255).all()
