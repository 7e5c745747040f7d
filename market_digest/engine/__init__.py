"""Batch engine primitives: dedup, retries, fan-out, deadlines, regeneration."""

from .deadline import DeadlineGuard, DeadlineOutcome
from .dedup import DuplicateCheckMode, DuplicateCheckResult, DuplicateIndex
from .fanout import FanOutReport, SourceOutcome, classify_outcome, gather_sources
from .normalizer import calculate_similarity, levenshtein_distance, normalize
from .rate_limit import RateLimitConfig, RateLimitExecutor
from .regenerator import RegenerationAttempt, RegenerationResult, TermRegenerator
from .retry import RetryConfig, RetryExecutor, RetryOutcome, compute_backoff_delay
from .usage import RequestUsage, is_near_limit, record_request, roll_over

__all__ = [
    "DeadlineGuard",
    "DeadlineOutcome",
    "DuplicateCheckMode",
    "DuplicateCheckResult",
    "DuplicateIndex",
    "FanOutReport",
    "RateLimitConfig",
    "RateLimitExecutor",
    "RegenerationAttempt",
    "RegenerationResult",
    "RequestUsage",
    "RetryConfig",
    "RetryExecutor",
    "RetryOutcome",
    "SourceOutcome",
    "TermRegenerator",
    "calculate_similarity",
    "classify_outcome",
    "compute_backoff_delay",
    "gather_sources",
    "is_near_limit",
    "levenshtein_distance",
    "normalize",
    "record_request",
    "roll_over",
]
