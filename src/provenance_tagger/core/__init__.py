"""Core decision engine: admission rules, actor resolution, tag reconciliation."""

from provenance_tagger.core.event_filter import EventFilter, FilterConfig, FilterDecision
from provenance_tagger.core.identity import resolve_actor
from provenance_tagger.core.reconciler import TagReconciler
from provenance_tagger.core.services import ProvenanceTaggingService

__all__ = [
    "EventFilter",
    "FilterConfig",
    "FilterDecision",
    "ProvenanceTaggingService",
    "TagReconciler",
    "resolve_actor",
]
