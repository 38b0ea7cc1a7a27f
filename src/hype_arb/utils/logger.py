import io
import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from datetime import datetime

LOG_FORMAT = '[%(asctime)s] %(levelname)s %(name)s: %(message)s'
LOG_DATEFMT = '%Y-%m-%d %H:%M:%S.%f'


class DotMsFormatter(logging.Formatter):
    def formatTime(self, record, datefmt=None):
        ct = datetime.fromtimestamp(record.created)
        if datefmt:
            s = ct.strftime(datefmt.replace('%f', '{ms}'))
            s = s.replace('{ms}', f'{int(record.msecs):03d}')
        else:
            s = ct.strftime("%Y-%m-%d %H:%M:%S")
            s += f".{int(record.msecs):03d}"
        return s


def setup_logger(name: str, log_path: str | Path, level: int = logging.INFO) -> logging.Logger:
    log_path = Path(log_path)
    log_path.parent.mkdir(parents=True, exist_ok=True)

    logger = logging.getLogger(name)
    logger.setLevel(level)

    # Pipelines may call this more than once per process (e.g. after a config
    # reload); drop previously installed handlers instead of stacking them.
    for handler in list(logger.handlers):
        if not getattr(handler, '_hype_arb_handler', False):
            continue
        logger.removeHandler(handler)
        if getattr(handler, '_utf8_wrapper', False):
            # Detach so the discarded wrapper does not close stdout when collected.
            handler.stream.flush()
            handler.stream.detach()
        handler.close()

    formatter = DotMsFormatter(LOG_FORMAT, datefmt=LOG_DATEFMT)

    # Console handler: force UTF-8 so non-ASCII coin names don't raise
    # UnicodeEncodeError on consoles that default to cp1252.
    if hasattr(sys.stdout, "buffer"):
        utf8_stream = io.TextIOWrapper(sys.stdout.buffer, encoding="utf-8", errors="replace")
        wrapped = True
    else:
        utf8_stream = sys.stdout
        wrapped = False
    ch = logging.StreamHandler(utf8_stream)
    ch.setFormatter(formatter)
    ch._hype_arb_handler = True
    ch._utf8_wrapper = wrapped
    logger.addHandler(ch)

    # Rotating file handler
    fh = RotatingFileHandler(log_path, maxBytes=5_000_000, backupCount=5, encoding="utf-8")
    fh.setFormatter(formatter)
    fh._hype_arb_handler = True
    logger.addHandler(fh)

    return logger
