from __future__ import annotations

import logging
import sys
from pathlib import Path

_FMT = logging.Formatter(
    fmt="%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)


def _is_ours(handler: logging.Handler) -> bool:
    return getattr(handler, "_pt_handler", False)


def setup_logging(
    *,
    log_dir: str | Path,
    console_level: int = logging.WARNING,
    file_level: int = logging.DEBUG,
) -> None:
    """
    Configure logging with:
    - Console handler on stderr, so stdout stays the task listing
    - File handler with full logs for debugging

    Calling it again replaces only the handlers installed here.
    """
    root = logging.getLogger()
    root.setLevel(logging.DEBUG)

    for h in list(root.handlers):
        if _is_ours(h):
            root.removeHandler(h)
            h.close()

    ch = logging.StreamHandler(sys.stderr)
    ch.setLevel(console_level)
    ch.setFormatter(_FMT)
    ch._pt_handler = True  # type: ignore[attr-defined]
    root.addHandler(ch)

    try:
        log_dir = Path(log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(str(log_dir / "pt.log"), encoding="utf-8")
    except OSError:
        logging.getLogger(__name__).warning("Cannot open log file in %s", log_dir)
        return
    fh.setLevel(file_level)
    fh.setFormatter(_FMT)
    fh._pt_handler = True  # type: ignore[attr-defined]
    root.addHandler(fh)
