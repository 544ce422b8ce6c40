import logging
import sys
import time

from pythonjsonlogger import jsonlogger


class UTCJsonFormatter(jsonlogger.JsonFormatter):
    converter = time.gmtime

    def add_fields(self, log_record, record, message_dict) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record.setdefault("service", "authcore")


def setup_logging(level: str = "INFO") -> None:
    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(level.upper())

    handler = logging.StreamHandler(sys.stdout)
    fmt = "%(asctime)s %(levelname)s %(name)s %(message)s"
    handler.setFormatter(UTCJsonFormatter(fmt))
    root.addHandler(handler)

    # driver chatter drowns out security events at INFO
    logging.getLogger("httpx").setLevel("WARNING")
    logging.getLogger("psycopg.pool").setLevel("WARNING")
