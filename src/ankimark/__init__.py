from .anki import AnkiConnectClient, AnkiConnectError, AnkiConnectUnavailableError
from .classify import PageStats, WordClass, classify_token, compute_stats
from .document import MarkerDescriptor, PageDocument
from .pipeline import PipelineState, VocabularyEngine
from .query import build_query_batches, escape_search
from .reconcile import Reconciler
from .script import ScriptTag, contains_cjk, detect_script
from .segment import cascade_tokens, tokenize
from .settings import EngineConfig, load_config
from .vocab import VocabularyEntry, VocabularySnapshot, fetch_vocabulary

__all__ = [
    "AnkiConnectClient",
    "AnkiConnectError",
    "AnkiConnectUnavailableError",
    "EngineConfig",
    "MarkerDescriptor",
    "PageDocument",
    "PageStats",
    "PipelineState",
    "Reconciler",
    "ScriptTag",
    "VocabularyEngine",
    "VocabularyEntry",
    "VocabularySnapshot",
    "WordClass",
    "build_query_batches",
    "cascade_tokens",
    "classify_token",
    "compute_stats",
    "contains_cjk",
    "detect_script",
    "escape_search",
    "fetch_vocabulary",
    "load_config",
    "tokenize",
]
