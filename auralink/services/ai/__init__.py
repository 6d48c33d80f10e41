from auralink.services.ai.advisory_generator import (
    AdvisoryGenerator,
    ReasoningFailure,
    ReasoningSuccess,
)
from auralink.services.ai.llm_backends import LLMBackend, LLMResponse, create_backend

__all__ = [
    "AdvisoryGenerator",
    "LLMBackend",
    "LLMResponse",
    "ReasoningFailure",
    "ReasoningSuccess",
    "create_backend",
]
