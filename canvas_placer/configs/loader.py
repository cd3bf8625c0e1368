"""Configuration loader for the placer.

Loads and validates ``placer.yaml`` into typed, frozen dataclasses.
Durations are stored in **seconds** throughout Python; the legacy
environment variables that carry milliseconds are converted on the way in.

Usage::

    from canvas_placer.configs.loader import load_config
    cfg = load_config()                      # default path
    cfg = load_config("/custom/placer.yaml") # explicit path
    cfg = apply_env_overrides(cfg)           # IMAGE_PATH, START_X, ...
    cfg = cfg.with_overrides(agents=5, headless=True)
"""

from __future__ import annotations

import dataclasses
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

from canvas_placer.compiler.image_path import STRATEGIES
from canvas_placer.identities.pool import Identity, load_identity_file
from canvas_placer.keys.generator import KeyBindings
from canvas_placer.palette.classifier import Palette, PaletteEntry
from canvas_placer.utils.fs import load_yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).parent / "placer.yaml"


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class ConfigError(Exception):
    """Raised when configuration validation fails."""

    pass


# ---------------------------------------------------------------------------
# Dataclasses -- mirror the YAML structure
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ImageConfig:
    """Source image and where it lands on the canvas."""

    path: str
    origin_x: int
    origin_y: int
    strategy: str

    @property
    def origin(self) -> tuple[int, int]:
        return (self.origin_x, self.origin_y)


@dataclass(frozen=True)
class TimingConfig:
    """Fixed delays, in seconds."""

    action_delay_s: float
    key_delay_s: float
    settle_s: float
    post_check_s: float = 3.0


@dataclass(frozen=True)
class RetryConfig:
    """Per-pixel retry policy.

    ``max_attempts=None`` retries a failing pixel indefinitely.  The delay
    before retry *n* (1-based) is ``base * backoff ** (n - 1)`` capped at
    ``max_delay_s``, where *base* is ``TimingConfig.action_delay_s``.
    """

    max_attempts: int | None = None
    backoff: float = 1.0
    max_delay_s: float = 30.0

    @property
    def unbounded(self) -> bool:
        return self.max_attempts is None

    def delay_for(self, attempt: int, base_s: float) -> float:
        """Delay after the *attempt*-th consecutive failure."""
        return min(base_s * self.backoff ** max(attempt - 1, 0), self.max_delay_s)

    def exhausted(self, attempt: int) -> bool:
        return self.max_attempts is not None and attempt >= self.max_attempts


@dataclass(frozen=True)
class AgentsConfig:
    """Agent fan-out and identity assignment."""

    count: int
    wait: bool = True
    strict_identities: bool = False
    identity_draws: int = 100


@dataclass(frozen=True)
class BrowserConfig:
    """Automation-driver session settings."""

    headless: bool
    url_template: str
    viewport: tuple[int, int] = (860, 680)
    window_position: tuple[int, int] = (0, 0)
    navigation_timeout_s: float = 600.0
    ready_timeout_s: float = 10.0
    canvas_selector: str = "canvas"
    canvas_timeout_s: float = 15.0
    page_script: str | None = None
    forward_console: bool = True

    def canvas_url(self, origin: tuple[int, int]) -> str:
        """Canvas URL centred on *origin*."""
        return self.url_template.format(x=origin[0], y=origin[1])


@dataclass(frozen=True)
class LoggingConfig:
    """Arguments for ``setup_logging``."""

    level: str = "INFO"
    file: str | None = None
    json: bool = False
    color: bool = True


@dataclass(frozen=True)
class PlacerConfig:
    """Complete placer configuration loaded from ``placer.yaml``."""

    image: ImageConfig
    timing: TimingConfig
    retry: RetryConfig
    agents: AgentsConfig
    browser: BrowserConfig
    keys: KeyBindings
    logging: LoggingConfig
    palette: Palette
    identities: tuple[Identity, ...]

    def with_overrides(self, **overrides: Any) -> PlacerConfig:
        """Return a copy with flat overrides applied and re-validated.

        Recognised keys: ``image_path``, ``origin``, ``strategy``,
        ``action_delay_s``, ``key_delay_s``, ``settle_s``, ``agents``,
        ``headless``, ``wait``, ``max_attempts``, ``page_script``,
        ``identities``.  ``None`` values are ignored.
        """
        ov = {k: v for k, v in overrides.items() if v is not None}
        unknown = set(ov) - _OVERRIDE_KEYS
        if unknown:
            raise ConfigError(f"Unknown override(s): {', '.join(sorted(unknown))}")

        image = self.image
        if "image_path" in ov:
            image = dataclasses.replace(image, path=str(ov["image_path"]))
        if "origin" in ov:
            ox, oy = ov["origin"]
            image = dataclasses.replace(image, origin_x=int(ox), origin_y=int(oy))
        if "strategy" in ov:
            image = dataclasses.replace(image, strategy=str(ov["strategy"]))

        timing = dataclasses.replace(
            self.timing,
            **{k: float(ov[k]) for k in ("action_delay_s", "key_delay_s", "settle_s") if k in ov},
        )

        agents = self.agents
        if "agents" in ov:
            agents = dataclasses.replace(agents, count=int(ov["agents"]))
        if "wait" in ov:
            agents = dataclasses.replace(agents, wait=bool(ov["wait"]))

        browser = self.browser
        if "headless" in ov:
            browser = dataclasses.replace(browser, headless=bool(ov["headless"]))
        if "page_script" in ov:
            browser = dataclasses.replace(browser, page_script=str(ov["page_script"]))

        retry = self.retry
        if "max_attempts" in ov:
            retry = dataclasses.replace(retry, max_attempts=int(ov["max_attempts"]))

        identities = self.identities
        if "identities" in ov:
            identities = tuple(ov["identities"])

        cfg = dataclasses.replace(
            self,
            image=image,
            timing=timing,
            agents=agents,
            browser=browser,
            retry=retry,
            identities=identities,
        )
        _validate_config(cfg)
        return cfg


_OVERRIDE_KEYS = {
    "image_path", "origin", "strategy", "action_delay_s", "key_delay_s",
    "settle_s", "agents", "headless", "wait", "max_attempts",
    "page_script", "identities",
}


# ---------------------------------------------------------------------------
# Section parsers
# ---------------------------------------------------------------------------


def _pair(raw: Any, name: str, cast: type = int) -> tuple[Any, Any]:
    if not isinstance(raw, (list, tuple)) or len(raw) != 2:
        raise ConfigError(f"{name} must be a two-element list, got {raw!r}")
    return (cast(raw[0]), cast(raw[1]))


def _parse_palette(raw: Any) -> Palette:
    if not isinstance(raw, list) or not raw:
        raise ConfigError("palette must be a non-empty list")
    entries = []
    for item in raw:
        try:
            entries.append(
                PaletteEntry.from_hex(
                    str(item["hex"]), str(item["symbol"]), str(item.get("name", "")),
                )
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise ConfigError(f"Invalid palette entry {item!r}: {exc}") from exc
    try:
        return Palette(entries)
    except ValueError as exc:
        raise ConfigError(str(exc)) from exc


def _parse_identities(data: Mapping[str, Any], base_dir: Path) -> tuple[Identity, ...]:
    identities: list[Identity] = []
    for raw in data.get("identities") or []:
        if isinstance(raw, str):
            ident = Identity.parse(raw)
        elif isinstance(raw, dict):
            ident = Identity(
                host=str(raw["host"]),
                port=int(raw["port"]),
                principal=str(raw.get("principal", "")),
                secret=str(raw.get("secret", "")),
            )
        else:
            ident = None
        if ident is None:
            raise ConfigError(f"Invalid identity entry: {raw!r}")
        identities.append(ident)

    ident_file = data.get("identities_file")
    if ident_file:
        path = Path(ident_file)
        if not path.is_absolute():
            path = base_dir / path
        try:
            identities.extend(load_identity_file(path))
        except FileNotFoundError as exc:
            raise ConfigError(str(exc)) from exc

    return tuple(identities)


def _validate_config(cfg: PlacerConfig) -> None:
    t = cfg.timing
    for name in ("action_delay_s", "key_delay_s", "settle_s", "post_check_s"):
        if getattr(t, name) < 0:
            raise ConfigError(f"timing.{name} must be >= 0, got {getattr(t, name)}")

    if cfg.agents.count < 1:
        raise ConfigError(f"agents.count must be >= 1, got {cfg.agents.count}")
    if cfg.agents.identity_draws < 1:
        raise ConfigError(
            f"agents.identity_draws must be >= 1, got {cfg.agents.identity_draws}"
        )

    r = cfg.retry
    if r.max_attempts is not None and r.max_attempts < 1:
        raise ConfigError(f"retry.max_attempts must be >= 1 or null, got {r.max_attempts}")
    if r.backoff < 1.0:
        raise ConfigError(f"retry.backoff must be >= 1.0, got {r.backoff}")
    if r.max_delay_s <= 0:
        raise ConfigError(f"retry.max_delay_s must be > 0, got {r.max_delay_s}")

    w, h = cfg.browser.viewport
    if w <= 0 or h <= 0:
        raise ConfigError(f"browser.viewport must be positive, got {(w, h)}")
    if "{x}" not in cfg.browser.url_template or "{y}" not in cfg.browser.url_template:
        logger.warning(
            "browser.url_template has no {x}/{y} placeholders: %s",
            cfg.browser.url_template,
        )

    if cfg.image.strategy not in STRATEGIES:
        logger.warning(
            "Unknown strategy %r; the compiler will keep row-major scan order "
            "(expected one of %s)",
            cfg.image.strategy,
            ", ".join(STRATEGIES),
        )

    if cfg.logging.level.upper() not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
        raise ConfigError(f"Unknown logging.level {cfg.logging.level!r}")


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(path: str | Path | None = None) -> PlacerConfig:
    """Load and validate placer configuration from YAML.

    Parameters
    ----------
    path : str | Path | None
        Path to ``placer.yaml``.  ``None`` loads the default shipped
        alongside this module.

    Returns
    -------
    PlacerConfig
        Fully validated, frozen configuration object.

    Raises
    ------
    ConfigError
        If any field is missing or fails validation.
    FileNotFoundError
        If *path* does not exist.
    """
    path = DEFAULT_CONFIG_PATH if path is None else Path(path)

    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")

    logger.info("Loading configuration from %s", path)

    try:
        data: dict[str, Any] = load_yaml(path)
    except ValueError as exc:
        raise ConfigError(str(exc)) from exc

    try:
        # -- image ----------------------------------------------------------
        im = data["image"]
        ox, oy = _pair(im["origin"], "image.origin")
        image = ImageConfig(
            path=str(im["path"]),
            origin_x=ox,
            origin_y=oy,
            strategy=str(im.get("strategy", "top-to-bottom")),
        )

        # -- timing ---------------------------------------------------------
        td = data["timing"]
        timing = TimingConfig(
            action_delay_s=float(td["action_delay_s"]),
            key_delay_s=float(td["key_delay_s"]),
            settle_s=float(td["settle_s"]),
            post_check_s=float(td.get("post_check_s", 3.0)),
        )

        # -- retry (optional) -----------------------------------------------
        rd = data.get("retry") or {}
        max_attempts = rd.get("max_attempts")
        retry = RetryConfig(
            max_attempts=None if max_attempts is None else int(max_attempts),
            backoff=float(rd.get("backoff", 1.0)),
            max_delay_s=float(rd.get("max_delay_s", 30.0)),
        )

        # -- agents ---------------------------------------------------------
        ad = data["agents"]
        agents = AgentsConfig(
            count=int(ad["count"]),
            wait=bool(ad.get("wait", True)),
            strict_identities=bool(ad.get("strict_identities", False)),
            identity_draws=int(ad.get("identity_draws", 100)),
        )

        # -- browser --------------------------------------------------------
        bd = data["browser"]
        page_script = bd.get("page_script")
        browser = BrowserConfig(
            headless=bool(bd.get("headless", False)),
            url_template=str(bd["url_template"]),
            viewport=_pair(bd.get("viewport", [860, 680]), "browser.viewport"),
            window_position=_pair(
                bd.get("window_position", [0, 0]), "browser.window_position",
            ),
            navigation_timeout_s=float(bd.get("navigation_timeout_s", 600.0)),
            ready_timeout_s=float(bd.get("ready_timeout_s", 10.0)),
            canvas_selector=str(bd.get("canvas_selector", "canvas")),
            canvas_timeout_s=float(bd.get("canvas_timeout_s", 15.0)),
            page_script=None if page_script is None else str(page_script),
            forward_console=bool(bd.get("forward_console", True)),
        )

        # -- keys (optional) ------------------------------------------------
        keys = KeyBindings(**{str(k): str(v) for k, v in (data.get("keys") or {}).items()})

        # -- logging (optional) ---------------------------------------------
        ld = data.get("logging") or {}
        logging_cfg = LoggingConfig(
            level=str(ld.get("level", "INFO")),
            file=ld.get("file"),
            json=bool(ld.get("json", False)),
            color=bool(ld.get("color", True)),
        )

        config = PlacerConfig(
            image=image,
            timing=timing,
            retry=retry,
            agents=agents,
            browser=browser,
            keys=keys,
            logging=logging_cfg,
            palette=_parse_palette(data["palette"]),
            identities=_parse_identities(data, path.parent),
        )

        _validate_config(config)
        logger.info("Configuration loaded successfully")
        return config

    except KeyError as exc:
        raise ConfigError(
            f"Missing required configuration key: {exc}"
        ) from exc
    except (TypeError, ValueError) as exc:
        raise ConfigError(
            f"Invalid configuration value: {exc}"
        ) from exc


def _env_bool(raw: str) -> bool:
    return raw.strip().lower() == "true"


def apply_env_overrides(
    cfg: PlacerConfig,
    environ: Mapping[str, str] | None = None,
) -> PlacerConfig:
    """Apply the legacy environment variables on top of *cfg*.

    ``IMAGE_PATH``, ``START_X``, ``START_Y``, ``STRATEGY``,
    ``ACTION_DELAY_MS``, ``KEY_DELAY_MS``, ``INITIAL_WAIT_MS``,
    ``BROWSERS`` and ``HEADLESS`` (``"true"`` enables headless).

    Raises
    ------
    ConfigError
        If a numeric variable does not parse.
    """
    env = os.environ if environ is None else environ
    ov: dict[str, Any] = {}
    try:
        if env.get("IMAGE_PATH"):
            ov["image_path"] = env["IMAGE_PATH"]
        if env.get("START_X") or env.get("START_Y"):
            ov["origin"] = (
                int(env.get("START_X") or cfg.image.origin_x),
                int(env.get("START_Y") or cfg.image.origin_y),
            )
        if env.get("STRATEGY"):
            ov["strategy"] = env["STRATEGY"]
        if env.get("ACTION_DELAY_MS"):
            ov["action_delay_s"] = float(env["ACTION_DELAY_MS"]) / 1000.0
        if env.get("KEY_DELAY_MS"):
            ov["key_delay_s"] = float(env["KEY_DELAY_MS"]) / 1000.0
        if env.get("INITIAL_WAIT_MS"):
            ov["settle_s"] = float(env["INITIAL_WAIT_MS"]) / 1000.0
        if env.get("BROWSERS"):
            ov["agents"] = int(env["BROWSERS"])
        if env.get("HEADLESS"):
            ov["headless"] = _env_bool(env["HEADLESS"])
    except ValueError as exc:
        raise ConfigError(f"Invalid environment override: {exc}") from exc

    if ov:
        logger.info("Applying environment overrides: %s", ", ".join(sorted(ov)))
        return cfg.with_overrides(**ov)
    return cfg
