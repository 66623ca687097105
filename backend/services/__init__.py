"""Services for the Knowledge Base Assistant."""
from .errors import AssistantError, InvalidInput, RetrievalUnavailable, GenerationFailed, AnalyticsRecordFailed
from .keyed_lock import KeyedLock
from .session_store import SessionStore, EvictionPolicy, NoEvictionPolicy, LRUEvictionPolicy
from .document_store import DocumentStore, InMemoryDocumentStore, SupabaseDocumentStore
from .retrieval_engine import RetrievalEngine
from .context_assembler import ContextAssembler
from .analytics_ledger import QueryAnalyticsLedger, InMemoryQueryLedger, SupabaseQueryLedger, normalize_query
from .llm_client import LLMClient, LLMResponse, LLMError, LLMClientError
from .telemetry_logger import TelemetryLogger
from .chat_orchestrator import ChatOrchestrator, ChatResult

__all__ = ['AssistantError', 'InvalidInput', 'RetrievalUnavailable', 'GenerationFailed', 'AnalyticsRecordFailed', 'KeyedLock', 'SessionStore', 'EvictionPolicy', 'NoEvictionPolicy', 'LRUEvictionPolicy', 'DocumentStore', 'InMemoryDocumentStore', 'SupabaseDocumentStore', 'RetrievalEngine', 'ContextAssembler', 'QueryAnalyticsLedger', 'InMemoryQueryLedger', 'SupabaseQueryLedger', 'normalize_query', 'LLMClient', 'LLMResponse', 'LLMError', 'LLMClientError', 'TelemetryLogger', 'ChatOrchestrator', 'ChatResult']
