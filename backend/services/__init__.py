"""Services for the MedChat proxy."""
from .role_prompts import get_system_instruction, build_system_prompt, resolve_role
from .cost_calculator import calculate_cost, get_tariff
from .usage_logger import UsageLogger
from .chat_store import ChatStore, ChatStoreError
from .llm_client import LLMClient, LLMError, LLMClientError, CompletionStream, normalize_usage, to_model_messages
from .chat_orchestrator import ChatOrchestrator, ChatExchange, get_last_user_text

__all__ = ['get_system_instruction', 'build_system_prompt', 'resolve_role', 'calculate_cost', 'get_tariff', 'UsageLogger', 'ChatStore', 'ChatStoreError', 'LLMClient', 'LLMError', 'LLMClientError', 'CompletionStream', 'normalize_usage', 'to_model_messages', 'ChatOrchestrator', 'ChatExchange', 'get_last_user_text']
