from .environment import BankConfig
from .logging import CorrelationIdFilter, current_correlation_id, mask_sensitive, setup_logging

__all__ = [
    "BankConfig",
    "CorrelationIdFilter",
    "current_correlation_id",
    "mask_sensitive",
    "setup_logging",
]
