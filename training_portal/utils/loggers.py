import logging


def get_logger(name="training_portal", level=logging.INFO):
    """Console logger for the app entry points; library modules use logging.getLogger(__name__)."""
    logger = logging.getLogger(name)
    if not logger.handlers:
        logger.setLevel(level)
        ch = logging.StreamHandler()
        ch.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s"))
        logger.addHandler(ch)
    return logger
