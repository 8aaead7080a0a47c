# corgi_buddy/core/logging.py
import logging
import sys

from pythonjsonlogger import jsonlogger

from corgi_buddy.core.config import Settings


class ContextFilter(logging.Filter):
    """Stamps app/environment on every record; request_id defaults to None outside requests."""

    def __init__(self, app_name: str, environment: str):
        super().__init__()
        self.app_name = app_name
        self.environment = environment

    def filter(self, record: logging.LogRecord) -> bool:
        record.app = self.app_name
        record.env = self.environment
        if not hasattr(record, "request_id"):
            record.request_id = None
        return True


def configure_logging(settings: Settings) -> None:
    """
    Structured logging (JSON) to stdout.
    """
    level = getattr(logging, settings.log_level.upper(), logging.INFO)

    root = logging.getLogger()
    root.setLevel(level)

    # clear handlers if reloaded
    root.handlers = []

    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(ContextFilter(settings.app_name, settings.environment))
    handler.setFormatter(
        jsonlogger.JsonFormatter(
            "%(asctime)s %(levelname)s %(name)s %(app)s %(env)s %(request_id)s %(message)s",
            rename_fields={"levelname": "level", "name": "logger"},
        )
    )
    root.addHandler(handler)

    logging.getLogger("uvicorn.access").setLevel(level)
    logging.getLogger("uvicorn.error").setLevel(level)
    # scheduler ticks and relay client chatter stay out of INFO output
    logging.getLogger("apscheduler").setLevel(max(level, logging.WARNING))
    logging.getLogger("aiohttp.access").setLevel(max(level, logging.WARNING))
