from .chat_responder import ChatResponder
from .errors import GenerationError, SentinelResultError, ValidationError
from .gateway import HttpTextGenerationGateway, ProviderConfig, TextGenerationGateway, provider_candidates, select_provider
from .json_extract import extract_first_json_object, first_balanced_object_span
from .models import (
    CHAT_CONFIDENCE,
    CHAT_FALLBACK_CONFIDENCE,
    CHAT_FALLBACK_TEXT,
    HARD_FALLBACK,
    SENTINEL_CONFIDENCES,
    SOFT_FALLBACK,
    STATUS_FALLBACK_HARD,
    STATUS_FALLBACK_SOFT,
    STATUS_OK,
    AssessmentRequest,
    AssessmentResult,
    ChatReply,
    SynthesisOutcome,
    is_chat_fallback,
    is_sentinel_confidence,
)
from .synthesizer import AssessmentSynthesizer, parse_assessment_text, validate_assessment_input

__all__ = [
    "CHAT_CONFIDENCE",
    "CHAT_FALLBACK_CONFIDENCE",
    "CHAT_FALLBACK_TEXT",
    "HARD_FALLBACK",
    "SENTINEL_CONFIDENCES",
    "SOFT_FALLBACK",
    "STATUS_FALLBACK_HARD",
    "STATUS_FALLBACK_SOFT",
    "STATUS_OK",
    "AssessmentRequest",
    "AssessmentResult",
    "AssessmentSynthesizer",
    "ChatReply",
    "ChatResponder",
    "GenerationError",
    "HttpTextGenerationGateway",
    "ProviderConfig",
    "SentinelResultError",
    "SynthesisOutcome",
    "TextGenerationGateway",
    "ValidationError",
    "extract_first_json_object",
    "first_balanced_object_span",
    "is_chat_fallback",
    "is_sentinel_confidence",
    "parse_assessment_text",
    "provider_candidates",
    "select_provider",
    "validate_assessment_input",
]
