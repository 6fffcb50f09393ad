"""
Vision Module

Shelf-photo identification through a hosted vision model.
"""

from shelfscan.vision.client import (
    VisionClient,
    VisionResult,
    Completion,
    ModelConfig,
    SUPPORTED_MODELS,
    DEFAULT_MODEL_ID,
    get_model,
    calculate_cost,
)
from shelfscan.vision.parser import (
    VisionResponseError,
    parse_vision_response,
    try_parse_json,
    coerce_items,
)
from shelfscan.vision.preprocessing import (
    PreprocessConfig,
    ImageTooLargeError,
    InvalidImageError,
    prepare_image,
    hash_image,
)
from shelfscan.vision.prompts import SYSTEM_PROMPT, build_user_message

__all__ = [
    "VisionClient",
    "VisionResult",
    "Completion",
    "ModelConfig",
    "SUPPORTED_MODELS",
    "DEFAULT_MODEL_ID",
    "get_model",
    "calculate_cost",
    "VisionResponseError",
    "parse_vision_response",
    "try_parse_json",
    "coerce_items",
    "PreprocessConfig",
    "ImageTooLargeError",
    "InvalidImageError",
    "prepare_image",
    "hash_image",
    "SYSTEM_PROMPT",
    "build_user_message",
]
