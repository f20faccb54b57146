import datetime
import inspect
import logging.config
import typing as t

TRACE = 5

TimestampProvider = t.Callable[..., datetime.datetime]


class LoggingProvider(object):
    """Configures stdlib logging from the `logging` settings section.

    The TRACE level sits below DEBUG and carries per-lock and per-row detail
    from the engine.
    """

    def __init__(self, config: dict[str, t.Any], debug: bool):
        logging.addLevelName(TRACE, "TRACE")
        logging.config.dictConfig(config)
        if debug:
            self.capture_warnings(True)

    @staticmethod
    def get_logger(name: str | None = None) -> logging.Logger:
        # default to the calling module's logger
        if name is None:
            name = inspect.stack()[1].frame.f_globals["__name__"]
        return logging.getLogger(name)

    @staticmethod
    def capture_warnings(capture: bool):
        logging.captureWarnings(capture)
