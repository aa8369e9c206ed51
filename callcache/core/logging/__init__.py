from .logger import (
    get_logger,
    log_stage,
    setup_logging,
    short_key,
)

__all__ = [
    "get_logger",
    "log_stage",
    "setup_logging",
    "short_key",
]
