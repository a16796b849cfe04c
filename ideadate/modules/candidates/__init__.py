"""modules/candidates — candidate resolvers, family classification and diversity ranking."""

from ideadate.modules.candidates.diversity import DiversityPolicy, rank_candidates, read_diversity_policy
from ideadate.modules.candidates.family import classify_place_family
from ideadate.modules.candidates.google_resolver import GoogleCandidateResolver
from ideadate.modules.candidates.local_resolver import LocalCandidateResolver, load_dataset
from ideadate.modules.candidates.place_details import enrich_plan_with_details, fetch_place_details_batched
from ideadate.modules.candidates.resolver import Candidate, CandidateResolver, SearchArgs
from ideadate.modules.candidates.resolver_chain import ResolverChain, build_default_chain, sanitize_resolver_error

__all__ = [
    "Candidate",
    "CandidateResolver",
    "DiversityPolicy",
    "GoogleCandidateResolver",
    "LocalCandidateResolver",
    "ResolverChain",
    "SearchArgs",
    "build_default_chain",
    "classify_place_family",
    "enrich_plan_with_details",
    "fetch_place_details_batched",
    "load_dataset",
    "rank_candidates",
    "read_diversity_policy",
    "sanitize_resolver_error",
]
