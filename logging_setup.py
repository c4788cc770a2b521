import logging
import sys
from pathlib import Path


def setup_logging(level=logging.INFO, log_file=None):
    """
    Configure the root logger for the terrain viewer.
    - Timestamped message format.
    - Logs go to stdout, and to ``log_file`` when one is given.
    """
    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file is not None:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file, mode="w", encoding="utf-8"))

    logging.basicConfig(
        level=level,
        format="%(asctime)s.%(msecs)03d [%(levelname)s] %(name)s:%(lineno)d | %(message)s",
        datefmt="%H:%M:%S",
        handlers=handlers,
        force=True,  # drop handlers from earlier calls so lines are not duplicated
    )

    # PyOpenGL is chatty at debug level
    logging.getLogger("OpenGL").setLevel(logging.WARNING)
