"""Rotating file + console logging shared by the app and the utils modules."""
import logging
import os
from logging.handlers import RotatingFileHandler

_RECORD_ATTRS = set(logging.makeLogRecord({}).__dict__) | {"message", "asctime"}


class ContextFormatter(logging.Formatter):
    """Appends ``extra={...}`` fields (report_id, path, ...) as key=value pairs."""

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = {k: v for k, v in record.__dict__.items() if k not in _RECORD_ATTRS}
        if not context:
            return line
        return line + " | " + " ".join(f"{key}={context[key]}" for key in sorted(context))


def _close_handlers(logger: logging.Logger) -> None:
    for handler in logger.handlers:
        handler.close()


def init_logging(app) -> logging.Logger:
    log_dir = app.config.get("LOG_DIR") or os.path.join(app.instance_path, "logs")
    os.makedirs(log_dir, exist_ok=True)
    log_path = os.path.join(log_dir, "snagging.log")

    level_name = (app.config.get("LOG_LEVEL") or "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)

    formatter = ContextFormatter(
        fmt="%(asctime)s | %(levelname)s | %(name)s | %(module)s:%(lineno)d | %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S%z",
    )

    file_handler = RotatingFileHandler(log_path, maxBytes=5_000_000, backupCount=5, encoding="utf-8")
    stream_handler = logging.StreamHandler()
    handlers = [file_handler, stream_handler]
    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)

    # The app logger and the utils.* module loggers write to the same place.
    for name in (app.name, "utils"):
        named = logging.getLogger(name)
        _close_handlers(named)
        named.setLevel(level)
        named.handlers = list(handlers)
        named.propagate = False

    logger = logging.getLogger(app.name)
    logger.info("Logging initialized", extra={"log_path": log_path, "level": level_name})
    return logger
