"""
ShaderGlass - Main Entry Point

Captures the desktop (or a fallback pattern) and presents it through a
chain of GLSL passes in a translucent window.
"""
import sys
from typing import List, Optional

from PySide6.QtGui import QGuiApplication, QSurfaceFormat

from core.errors import ConfigError, ShaderGlassError
from core.logging.logger import setup_logging, get_logger
from core.settings.render_options import USAGE, parse_render_args
from core.settings.settings_manager import SettingsManager
from engine.frame_driver import build_frame_driver
from engine.render_loop import EXIT_FATAL, RenderLoop
from rendering.gl_format import build_surface_format, read_surface_preferences
from rendering.gl_programs.overlay_textures import OverlayTextureSet
from rendering.render_window import RenderWindow
from versioning import APP_DESCRIPTION, APP_EXE_NAME, APP_NAME, APP_ORGANIZATION, APP_VERSION, version_banner

logger = get_logger(__name__)

EXIT_CONFIG = 2


def _report_fatal(message: str) -> None:
    print(f"Fatal error: {message}", file=sys.stderr)


def run(app: QGuiApplication, options, fmt: QSurfaceFormat) -> int:
    """
    Open the window and run the render loop until it stops.

    Args:
        app: Qt application instance
        options: Validated RenderOptions
        fmt: Surface format for the window

    Returns:
        Exit code
    """
    window = RenderWindow(options.width, options.height, options.opacity,
                          surface_format=fmt, title=f"{APP_NAME} {APP_VERSION}")
    window.show()

    driver = build_frame_driver(options)
    overlays = OverlayTextureSet.from_options(options.noise_overlay, options.overlay_path)
    loop = RenderLoop(options, window, driver, overlays=overlays)
    loop.finished.connect(app.exit)

    try:
        loop.initialize()
        loop.start()
        exit_code = app.exec()
    except ConfigError as e:
        logger.error("Configuration error: %s", e)
        _report_fatal(str(e))
        exit_code = EXIT_CONFIG
    except ShaderGlassError as e:
        logger.exception("Fatal error during startup: %s", e)
        _report_fatal(str(e))
        exit_code = EXIT_FATAL
    finally:
        loop.shutdown()
        window.destroy()

    if loop.fatal_error is not None:
        _report_fatal(str(loop.fatal_error))
        exit_code = EXIT_FATAL
    return exit_code


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = list(sys.argv[1:] if argv is None else argv)

    if '--help' in args or '-h' in args:
        print(APP_DESCRIPTION)
        print(USAGE)
        return 0

    # Setup logging first
    debug_mode = '--debug' in args or '-d' in args
    verbose_mode = '--verbose' in args or '-v' in args
    setup_logging(debug=debug_mode, verbose=verbose_mode)

    logger.info("=" * 60)
    logger.info("%s Starting", version_banner())
    logger.info("=" * 60)
    logger.debug("Command-line arguments: %s", args)

    settings = SettingsManager(APP_ORGANIZATION, APP_NAME)
    try:
        options = parse_render_args(args, settings)
    except ConfigError as e:
        logger.error("Configuration error: %s", e)
        _report_fatal(str(e))
        print(USAGE, file=sys.stderr)
        return EXIT_CONFIG

    logger.info("Options: %dx%d opacity=%.2f vsync=%s capture=%s passes=%s",
                options.width, options.height, options.opacity, options.vsync,
                options.capture_enabled, options.shader_paths or ["default"])

    # Configure OpenGL globally BEFORE creating the application
    prefs = read_surface_preferences(settings, refresh_sync=options.vsync)
    fmt = build_surface_format(prefs, reason="startup")
    QSurfaceFormat.setDefaultFormat(fmt)

    app = QGuiApplication(sys.argv[:1])
    app.setApplicationName(APP_EXE_NAME)
    app.setOrganizationName(APP_ORGANIZATION)
    app.setApplicationVersion(APP_VERSION)
    logger.info("Qt Application created: %s (platform=%s)", app.applicationName(), app.platformName())

    try:
        exit_code = run(app, options, fmt)
    except Exception as e:
        logger.exception(f"Fatal error in main: {e}")
        _report_fatal(str(e))
        exit_code = EXIT_FATAL

    logger.info("=" * 60)
    logger.info(f"{APP_NAME} Exiting (code={exit_code})")
    logger.info("=" * 60)

    return exit_code


if __name__ == "__main__":
    sys.exit(main())
