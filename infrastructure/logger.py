import logging
import sys

_loggers = {}

def setup_logger(name="agrivision", level=logging.INFO, toFile=False, fileName="agrivision.log"):
    """
    Configures the "agrivision" logger once per process. Upstream events,
    route logs and module loggers from get_logger() all end up here.

    Args
        name: root name; module loggers are created beneath it
        level: "DEBUG", "INFO", ... or a logging constant, from LOGGER_LEVEL
        toFile: when True (LOG_TO_FILE) records also go to fileName
        fileName: path of the log file (LOG_FILE), opened in append mode;
            ignored unless toFile is set

    Returns:
        The configured logger. Later calls with the same name return it
        without adding handlers again.
    """
    if name in _loggers:
        return _loggers[name]

    logger = logging.getLogger(name)
    numeric_level = getattr(logging, str(level).upper(), logging.INFO)
    logger.setLevel(numeric_level)
    formatter = logging.Formatter("[%(asctime)s] - %(name)s %(levelname)s %(message)s")

    if toFile:
        fileHandler = logging.FileHandler(fileName)
        fileHandler.setFormatter(formatter)
        logger.addHandler(fileHandler)

    streamHandler = logging.StreamHandler(sys.stdout)
    streamHandler.setFormatter(formatter)
    logger.addHandler(streamHandler)

    _loggers[name] = logger
    return logger

def get_logger(name="agrivision"):
    if not name.startswith("agrivision"):
        name = f"agrivision.{name}"
    return logging.getLogger(name)
