"""Services module - Business logic layer"""

from .config_manager import ConfigManager
from .diff_engine import DiffEngine
from .llm_service import LLMService, LLMServiceError, OptimizeOptions
from .prompt_store import PromptNotFoundError, PromptStore, VersionNotFoundError

__all__ = [
    "ConfigManager",
    "DiffEngine",
    "LLMService",
    "LLMServiceError",
    "OptimizeOptions",
    "PromptNotFoundError",
    "PromptStore",
    "VersionNotFoundError",
]
