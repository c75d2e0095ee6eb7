"""
HTML heuristic extraction - patient counts and status from facility pages.
"""

from waitline.extraction.extractor import RULES, HeuristicExtractor, extract
from waitline.extraction.minutes import extract_minutes, parse_duration_minutes
from waitline.extraction.rules import (
    MAX_PLAUSIBLE_PATIENTS,
    MIN_PLAUSIBLE_PATIENTS,
    Extraction,
    closed_phrase,
    generic_phrase,
    js_variable_assignment,
    no_wait_phrase,
    patients_in_line_proximity,
    site_specific_counter,
    visible_text,
)

__all__ = [
    "RULES",
    "HeuristicExtractor",
    "extract",
    "Extraction",
    "MIN_PLAUSIBLE_PATIENTS",
    "MAX_PLAUSIBLE_PATIENTS",
    # Rules, in precedence order
    "site_specific_counter",
    "js_variable_assignment",
    "patients_in_line_proximity",
    "generic_phrase",
    "no_wait_phrase",
    "closed_phrase",
    "visible_text",
    # Minutes
    "extract_minutes",
    "parse_duration_minutes",
]
