import logging
import os
from pathlib import Path
from logging.handlers import RotatingFileHandler
from jsw.common.setup import PATHS

LOG_FORMAT = "%(asctime)s %(levelname)s [%(threadName)s %(filename)s:%(lineno)d] %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# JSW_LOG_LEVEL takes a level name (DEBUG, INFO, ...), JSW_LOG_CONSOLE=1 mirrors the log to stderr when running
# from a terminal.
def _env_level(default):
    name = os.getenv("JSW_LOG_LEVEL", "").strip().upper()
    level = logging.getLevelName(name) if name else default
    return level if isinstance(level, int) else default

def _env_flag(name):
    return os.getenv(name, "").strip().lower() in ("1", "true", "yes", "on")

# Handlers are tagged "<logger>:<role>" so building the same logger twice doesn't double up output.
def _attach(logger, role, handler, level, fmt):
    handler_name = f"{logger.name}:{role}"
    if any(h.get_name() == handler_name for h in logger.handlers):
        handler.close()
        return
    handler.setLevel(level)
    handler.setFormatter(fmt)
    handler.set_name(handler_name)
    logger.addHandler(handler)

def get_logger(
        name = "jirastopwatch",
        level: int | None = None,
        log_dir: Path | None = None,
        console: bool | None = None,
) -> logging.Logger:
    level = _env_level(logging.INFO) if level is None else level
    console = _env_flag("JSW_LOG_CONSOLE") if console is None else console

    logger = logging.getLogger(name)
    logger.propagate = False
    logger.setLevel(level)

    log_dir = log_dir or PATHS.logs
    log_dir.mkdir(parents=True,exist_ok=True)
    fmt = logging.Formatter(LOG_FORMAT,LOG_DATE_FORMAT)

    # Long-running history, INFO and up only so tick chatter doesn't rotate it away
    _attach(logger, "persistent", RotatingFileHandler(
        filename=log_dir / f"{name}.log",
        maxBytes=2 * 1024 * 1024,
        backupCount=3,
        encoding="utf-8",
        delay=True,
    ), max(level, logging.INFO), fmt)

    # Overwritten every run, at the configured level
    _attach(logger, "latest", logging.FileHandler(
        filename=log_dir / "latest.log",
        mode="w",
        encoding="utf-8",
        delay=True,
    ), level, fmt)

    if console:
        _attach(logger, "console", logging.StreamHandler(), level, fmt)

    return logger

log = get_logger()
