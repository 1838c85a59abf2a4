#Expose the high-level pipeline pieces:
#Candidate filtering (hard rules)
#Scoring / ranking
#Policy and error taxonomy
#The orchestrator itself is imported from dispatch.dispatcher (it pulls in the
#notification fan-out, which depends on this package).

from .candidate_filter import Candidate, filter_candidates, match_category
from .scoring import MatchingCriteria, MatchResult, rank_for_dispatch, score_candidate
from .policy import DispatchPolicy, default_dispatch_policy
from . import errors

__all__ = [
    "Candidate",
    "filter_candidates",
    "match_category",
    "MatchingCriteria",
    "MatchResult",
    "rank_for_dispatch",
    "score_candidate",
    "DispatchPolicy",
    "default_dispatch_policy",
    "errors",
]
