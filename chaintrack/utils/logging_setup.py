# chaintrack/utils/logging_setup.py
import logging

FORMAT = "%(asctime)s %(levelname)s %(name)s - %(message)s"

def setup_logging(settings) -> None:
    """Configure the root logger once from LOG_LEVEL."""
    level = getattr(logging, (settings.LOG_LEVEL or "INFO").upper(), logging.INFO)
    root = logging.getLogger()
    root.setLevel(level)
    # avoid duplicate handlers on reload
    if not any(getattr(h, "_chaintrack", False) for h in root.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(FORMAT))
        handler._chaintrack = True
        root.addHandler(handler)

    for name in ("uvicorn", "uvicorn.error", "fastapi"):
        logging.getLogger(name).setLevel(level)
