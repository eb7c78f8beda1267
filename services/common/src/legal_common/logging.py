import logging
import os
import sys

from pythonjsonlogger import jsonlogger

_THIRD_PARTY_LOGGERS = ["httpx", "websockets", "assemblyai", "pika"]


def setup_logging():
    """
    Configures structured JSON logging on stdout and returns the root logger.

    Every record carries timestamp, level, logger name, message and the
    Datadog trace_id/span_id. Uvicorn's loggers share the same handler so
    access logs come out in the same format. The level is read from
    LOG_LEVEL (default INFO); chatty client libraries are held at WARNING.
    """
    level = os.getenv("LOG_LEVEL", "INFO").upper()
    formatter = jsonlogger.JsonFormatter(
        "%(asctime)s %(levelname)s %(name)s %(message)s %(trace_id)s %(span_id)s"
    )
    stream_handler = logging.StreamHandler(sys.stdout)
    stream_handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = [stream_handler]

    for logger_name in ["uvicorn", "uvicorn.access", "uvicorn.error"]:
        u_logger = logging.getLogger(logger_name)
        u_logger.setLevel(level)
        u_logger.handlers = [stream_handler]
        u_logger.propagate = False

    for logger_name in _THIRD_PARTY_LOGGERS:
        logging.getLogger(logger_name).setLevel(logging.WARNING)

    return root_logger
