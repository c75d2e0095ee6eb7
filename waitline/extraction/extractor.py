"""
Ordered heuristic extraction over scraped HTML.

The first rule that yields an in-range result wins; later rules are never
consulted. Reordering ``RULES`` is the only way to change precedence.
"""

from loguru import logger

from waitline.extraction.rules import (
    Extraction,
    Rule,
    closed_phrase,
    generic_phrase,
    is_plausible,
    js_variable_assignment,
    no_wait_phrase,
    patients_in_line_proximity,
    site_specific_counter,
)

RULES: tuple[Rule, ...] = (
    site_specific_counter,
    js_variable_assignment,
    patients_in_line_proximity,
    generic_phrase,
    no_wait_phrase,
    closed_phrase,
)


class HeuristicExtractor:
    """Applies a fixed rule list to page text."""

    def __init__(self, rules: tuple[Rule, ...] = RULES):
        self.rules = rules

    def extract(self, html: str) -> Extraction | None:
        if not html or not html.strip():
            return None

        for rule in self.rules:
            result = rule(html)
            if result is None:
                continue
            if not is_plausible(result.patients_in_line):
                logger.debug(
                    f"Discarded implausible count {result.patients_in_line} "
                    f"from {result.rule}"
                )
                continue
            return result
        return None


_default_extractor = HeuristicExtractor()


def extract(html: str) -> Extraction | None:
    """Run the default rule list."""
    return _default_extractor.extract(html)
