"""Command-line parsing for the render process.

Persisted settings supply the defaults; anything given on the command line
overrides them for this run only and is never written back.
"""
from __future__ import annotations

from dataclasses import dataclass, field
import math
import re
from typing import Any, List, Optional, Sequence, Tuple

from core.errors import ConfigError
from core.logging.logger import get_logger
from core.settings.settings_manager import DEFAULT_SETTINGS, SettingsManager

logger = get_logger(__name__)

PATTERN_GRADIENT = "gradient"

_HEX_COLOR_RE = re.compile(r"^#([0-9a-fA-F]{6})$")

USAGE = (
    "usage: shaderglass [--shader PATH]... [--width=N] [--height=N] [--opacity=F]\n"
    "                   [--no-vsync] [--no-capture] [--screen=N]\n"
    "                   [--pattern=gradient|#RRGGBB] [--noise] [--overlay=PATH]\n"
    "                   [--debug|-d] [--verbose|-v]"
)


def clamp_opacity(value: float) -> float:
    """Clamp an opacity scalar into [0.0, 1.0]."""
    if value < 0.0:
        return 0.0
    if value > 1.0:
        return 1.0
    return float(value)


def parse_hex_color(spec: str) -> Tuple[int, int, int, int]:
    """Parse ``#RRGGBB`` into an opaque RGBA tuple."""
    match = _HEX_COLOR_RE.match(spec.strip())
    if match is None:
        raise ConfigError(f"Invalid color '{spec}', expected #RRGGBB")
    raw = match.group(1)
    return (int(raw[0:2], 16), int(raw[2:4], 16), int(raw[4:6], 16), 255)


@dataclass
class RenderOptions:
    """Validated configuration for one run."""

    shader_paths: List[str] = field(default_factory=list)
    width: int = 1280
    height: int = 720
    opacity: float = 0.8
    vsync: bool = True
    capture_enabled: bool = True
    screen_index: int = 0
    pattern: str = PATTERN_GRADIENT
    noise_overlay: bool = False
    overlay_path: Optional[str] = None
    debug: bool = False
    verbose: bool = False

    @property
    def pattern_color(self) -> Optional[Tuple[int, int, int, int]]:
        """RGBA fill for a solid fallback, or None for the gradient."""
        if self.pattern == PATTERN_GRADIENT:
            return None
        return parse_hex_color(self.pattern)


def _parse_int(flag: str, raw: str, minimum: int) -> int:
    try:
        value = int(raw)
    except ValueError:
        raise ConfigError(f"{flag} expects an integer, got '{raw}'") from None
    if value < minimum:
        raise ConfigError(f"{flag} must be >= {minimum}, got {value}")
    return value


def _parse_float(flag: str, raw: str) -> float:
    try:
        value = float(raw)
    except ValueError:
        raise ConfigError(f"{flag} expects a number, got '{raw}'") from None
    if not math.isfinite(value):
        raise ConfigError(f"{flag} expects a finite number, got '{raw}'")
    return value


def _setting(settings: Optional[SettingsManager], key: str) -> Any:
    if settings is None:
        return DEFAULT_SETTINGS[key]
    return settings.get(key, DEFAULT_SETTINGS[key])


def options_from_settings(settings: Optional[SettingsManager]) -> RenderOptions:
    """Build RenderOptions from persisted defaults only."""
    if settings is None:
        shader_paths: List[str] = list(DEFAULT_SETTINGS['shaders.paths'])
        vsync = bool(DEFAULT_SETTINGS['display.refresh_sync'])
        capture = bool(DEFAULT_SETTINGS['capture.enabled'])
        noise = bool(DEFAULT_SETTINGS['overlays.noise'])
    else:
        shader_paths = settings.get_list('shaders.paths')
        vsync = settings.get_bool('display.refresh_sync', True)
        capture = settings.get_bool('capture.enabled', True)
        noise = settings.get_bool('overlays.noise', False)

    width = _parse_int("display.width", str(_setting(settings, 'display.width')), 1)
    height = _parse_int("display.height", str(_setting(settings, 'display.height')), 1)
    opacity = clamp_opacity(_parse_float("display.opacity", str(_setting(settings, 'display.opacity'))))
    screen_index = _parse_int("capture.screen_index", str(_setting(settings, 'capture.screen_index')), 0)
    pattern = str(_setting(settings, 'capture.fallback_pattern') or PATTERN_GRADIENT)
    overlay = str(_setting(settings, 'overlays.image_path') or '') or None

    return RenderOptions(
        shader_paths=shader_paths,
        width=width,
        height=height,
        opacity=opacity,
        vsync=vsync,
        capture_enabled=capture,
        screen_index=screen_index,
        pattern=pattern,
        noise_overlay=noise,
        overlay_path=overlay,
    )


def parse_render_args(argv: Sequence[str], settings: Optional[SettingsManager] = None) -> RenderOptions:
    """Parse command-line arguments (without the program name).

    ``--shader PATH`` may repeat; passes run in the order given. Shader
    paths from the command line replace the persisted list rather than
    extending it. Unrecognized arguments are logged and ignored.

    Raises:
        ConfigError: a recognized flag carries a malformed value
    """
    options = options_from_settings(settings)
    cli_shaders: List[str] = []

    args = list(argv)
    i = 0
    while i < len(args):
        arg = args[i]
        if arg == "--shader":
            if i + 1 >= len(args):
                raise ConfigError("--shader requires a path")
            cli_shaders.append(args[i + 1])
            i += 2
            continue
        if arg.startswith("--shader="):
            path = arg.split("=", 1)[1]
            if not path:
                raise ConfigError("--shader requires a path")
            cli_shaders.append(path)
        elif arg.startswith("--width="):
            options.width = _parse_int("--width", arg.split("=", 1)[1], 1)
        elif arg.startswith("--height="):
            options.height = _parse_int("--height", arg.split("=", 1)[1], 1)
        elif arg.startswith("--opacity="):
            requested = _parse_float("--opacity", arg.split("=", 1)[1])
            options.opacity = clamp_opacity(requested)
            if options.opacity != requested:
                logger.warning("Opacity %s clamped to %s", requested, options.opacity)
        elif arg.startswith("--screen="):
            options.screen_index = _parse_int("--screen", arg.split("=", 1)[1], 0)
        elif arg.startswith("--pattern="):
            options.pattern = arg.split("=", 1)[1]
        elif arg.startswith("--overlay="):
            path = arg.split("=", 1)[1]
            if not path:
                raise ConfigError("--overlay requires a path")
            options.overlay_path = path
        elif arg == "--no-vsync":
            options.vsync = False
        elif arg == "--no-capture":
            options.capture_enabled = False
        elif arg == "--noise":
            options.noise_overlay = True
        elif arg in ("--debug", "-d"):
            options.debug = True
        elif arg in ("--verbose", "-v"):
            options.verbose = True
        else:
            logger.warning("Ignoring unrecognized argument: %s", arg)
        i += 1

    if cli_shaders:
        options.shader_paths = cli_shaders

    if options.pattern != PATTERN_GRADIENT:
        # Validate eagerly so a typo fails before any window opens.
        parse_hex_color(options.pattern)

    return options


__all__ = [
    "PATTERN_GRADIENT",
    "USAGE",
    "RenderOptions",
    "clamp_opacity",
    "options_from_settings",
    "parse_hex_color",
    "parse_render_args",
]
