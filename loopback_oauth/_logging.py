import logging
import sys

handler = logging.StreamHandler(sys.stderr)
handler.setLevel(logging.DEBUG)

formatter = logging.Formatter(
    "\033[92m%(asctime)s - %(name)s:%(levelname)s\033[0m: %(filename)s:%(lineno)s - %(message)s",
    datefmt="%H:%M:%S",
)
handler.setFormatter(formatter)

verbose_logger = logging.getLogger("LoopbackOAuth")
verbose_server_logger = logging.getLogger("LoopbackOAuth Listener")

verbose_logger.addHandler(handler)
verbose_server_logger.addHandler(handler)

verbose_logger.setLevel(logging.WARNING)
verbose_server_logger.setLevel(logging.WARNING)


def _turn_on_debug():
    verbose_logger.setLevel(level=logging.DEBUG)
    verbose_server_logger.setLevel(level=logging.DEBUG)


def setup_logging(verbose: bool = False) -> None:
    """Set logger levels for command line use."""
    if verbose:
        _turn_on_debug()
    else:
        verbose_logger.setLevel(logging.INFO)
        verbose_server_logger.setLevel(logging.WARNING)
