from .candidates import discover_candidates, feed_cutoff, prune_candidates
from .download import BatchResult, process_batch, retrieve_article
from .scheduler import TickResult, parse_frequency, run_tick

__all__ = [
    "BatchResult",
    "TickResult",
    "discover_candidates",
    "feed_cutoff",
    "parse_frequency",
    "process_batch",
    "prune_candidates",
    "retrieve_article",
    "run_tick",
]
