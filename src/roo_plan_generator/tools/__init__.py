"""Deterministic tools: text extraction, plan validation and fallback synthesis."""

from .extractors import (
    normalize_response,
    parse_outlines,
    parse_structure_list,
    splice_outlines,
    split_concise_command,
)
from .fallbacks import fallback_mode_set, fallback_plan, select_delegate_slugs
from .plan_validator import is_refined_plan_acceptable, validate_plan

__all__ = [
    "fallback_mode_set",
    "fallback_plan",
    "is_refined_plan_acceptable",
    "normalize_response",
    "parse_outlines",
    "parse_structure_list",
    "select_delegate_slugs",
    "splice_outlines",
    "split_concise_command",
    "validate_plan",
]
