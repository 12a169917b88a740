import logging


# Logger du package : messages de diagnostic non fatals
def setup_logger():
    """Logger avec sortie console pour les diagnostics non fatals."""
    logger = logging.getLogger('crossprob')
    logger.setLevel(logging.INFO)

    if not logger.handlers:
        formatter = logging.Formatter('%(asctime)s - %(levelname)s - %(message)s',
                                      datefmt='%Y-%m-%d %H:%M:%S')
        ch = logging.StreamHandler()
        ch.setFormatter(formatter)
        logger.addHandler(ch)

    return logger


logger = setup_logger()
