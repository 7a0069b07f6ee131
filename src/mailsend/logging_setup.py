"""
Logging configuration for the mailsend command line.

Console output always; a rotating log file when the YAML config has a
``logging.file_path`` entry.
"""

import logging
import logging.handlers

import yaml

logger = logging.getLogger(__name__)

DETAILED_FORMAT = (
    "%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s"
)
BRIEF_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"


def _level(verbose: bool, quiet: bool) -> int:
    if quiet:
        return logging.ERROR
    if verbose:
        return logging.DEBUG
    return logging.INFO


def _file_handler(log_config: dict) -> logging.Handler:
    handler = logging.handlers.RotatingFileHandler(
        log_config["file_path"],
        maxBytes=log_config.get("max_file_size", 5 * 1024 * 1024),
        backupCount=log_config.get("backup_count", 3),
        encoding="utf-8",
    )
    # Files keep every attempt and its parameters regardless of console level
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(logging.Formatter(DETAILED_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    return handler


def setup_logging(
    verbose: bool = False, quiet: bool = False, config: dict | None = None
) -> None:
    """
    Configure the root logger for one mailsend run.

    Args:
        verbose: Enable DEBUG level logging (includes masked SMTP parameters)
        quiet: Enable only ERROR level logging
        config: Configuration dictionary with an optional "logging" section
    """
    log_level = _level(verbose, quiet)
    log_config = (config or {}).get("logging") or {}

    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(log_level)
    if verbose:
        console_handler.setFormatter(
            logging.Formatter(DETAILED_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
        )
    else:
        console_handler.setFormatter(logging.Formatter(BRIEF_FORMAT, datefmt="%H:%M:%S"))
    root_logger.addHandler(console_handler)

    if not log_config.get("file_path"):
        root_logger.setLevel(log_level)
        return

    try:
        root_logger.addHandler(_file_handler(log_config))
    except OSError as e:
        root_logger.setLevel(log_level)
        logger.warning("Could not open log file %s (%s), using console only",
                       log_config["file_path"], e)
        return

    # Root must pass DEBUG records through to the file handler
    root_logger.setLevel(logging.DEBUG)
    logger.info("File logging enabled: %s", log_config["file_path"])


def load_config(config_path: str) -> dict:
    """
    Load configuration from YAML file.

    Args:
        config_path: Path to configuration file

    Returns:
        Configuration dictionary (empty for an empty file)
    """
    try:
        with open(config_path) as f:
            config = yaml.safe_load(f)
    except FileNotFoundError:
        logger.error("Configuration file not found: %s", config_path)
        raise
    except yaml.YAMLError as e:
        logger.error("Error parsing configuration file: %s", str(e))
        raise
    logger.info("Configuration loaded from %s", config_path)
    return config or {}
