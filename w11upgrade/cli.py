"""
w11upgrade command line
=======================

Usage:
    w11upgrade                                   # Upgrade from the default source
    w11upgrade --source D:\\Win11                 # Upgrade from an extracted ISO
    w11upgrade --source C:\\img\\Win11.iso --dry-run
    w11upgrade --dump-default-config w11upgrade.yaml

Command-line values override the configuration file, which overrides
the built-in defaults.  The process exits with the setup exit code when
setup ran, 1 when a precondition aborted the run and 2 on a
configuration error.
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Any, Dict, List, Optional

from . import config as _config
from .errors import ConfigError
from .executor import UpgradeExecutor

EXIT_PRECONDITION = 1
EXIT_CONFIG = 2


def _setup_logging(log_cfg: Dict[str, Any], verbose: bool = False) -> None:
    """Configure the root logging handler based on the config.

    Parameters
    ----------
    log_cfg : dict
        Logging configuration with 'level' and optional 'file'.
    verbose : bool
        Force DEBUG level.

    Raises
    ------
    ConfigError
        If the log file cannot be opened.
    """
    level_name = "DEBUG" if verbose else str(log_cfg.get("level") or "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)
    handlers: List[logging.Handler] = []
    stream_handler = logging.StreamHandler()
    stream_handler.setLevel(level)
    handlers.append(stream_handler)
    log_file = log_cfg.get("file")
    if log_file:
        try:
            file_handler = logging.FileHandler(log_file, encoding="utf-8")
        except OSError as exc:
            raise ConfigError(f"Cannot open log file {log_file}: {exc}") from exc
        file_handler.setLevel(level)
        handlers.append(file_handler)
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=handlers,
        force=True,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="w11upgrade",
        description="Unattended in-place Windows 11 upgrade",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--config", type=str, default=None, help="Path to YAML/JSON configuration file"
    )
    parser.add_argument(
        "--dump-default-config",
        type=str,
        dest="dump_cfg",
        help="Dump the default configuration to the specified path and exit",
    )
    parser.add_argument(
        "--source", type=str, help="Disk image or directory containing setup.exe"
    )
    parser.add_argument(
        "--dynamic-update",
        type=str,
        dest="dynamic_update",
        help="Enable or Disable (default: Disable)",
    )
    parser.add_argument(
        "--mode",
        choices=list(_config.EXECUTOR_MODES),
        help="Override executor mode (dry-run or real-run)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Shortcut for --mode dry-run",
    )
    parser.add_argument(
        "--check-pending-reboot",
        action="store_true",
        help="Abort when Windows reports a pending reboot",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    return parser


def _apply_overrides(cfg: Dict[str, Any], args: argparse.Namespace) -> Dict[str, Any]:
    upgrade = cfg.setdefault("upgrade", {})
    if args.source:
        upgrade["source"] = args.source
    if args.dynamic_update is not None:
        upgrade["dynamic_update"] = args.dynamic_update
    if args.check_pending_reboot:
        upgrade["check_pending_reboot"] = True
    if args.mode:
        cfg.setdefault("executor", {})["mode"] = args.mode
    if args.dry_run:
        cfg.setdefault("executor", {})["mode"] = "dry-run"
    return cfg


def main(argv: Optional[List[str]] = None) -> int:
    """Entry point of the ``w11upgrade`` console script."""
    args = build_parser().parse_args(argv)
    log = logging.getLogger("w11upgrade")

    try:
        if args.dump_cfg:
            _config.dump_default_config(args.dump_cfg)
            print(f"Default configuration written to {args.dump_cfg}")
            return 0
        cfg = _apply_overrides(_config.load_config(args.config), args)
        settings = _config.load_settings(cfg)
        _setup_logging(cfg.get("logging", {}), verbose=args.verbose)
    except ConfigError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return EXIT_CONFIG

    log.info("Windows 11 upgrade from %s (DynamicUpdate=%s)",
             settings.source, settings.dynamic_update)
    report = UpgradeExecutor(settings).run()

    if report.warnings:
        log.warning("Completed with %d warning(s):", len(report.warnings))
        for warning in report.warnings:
            log.warning("  - %s", warning)
    if report.error is not None:
        log.error("✗ Upgrade not started: %s", report.error)
        return EXIT_PRECONDITION
    log.info("Setup exit code: %d", report.exit_code)
    return report.exit_code
