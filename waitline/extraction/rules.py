"""
Heuristic rules for reading a patient count or facility status off a web page.

Each rule is a pure function ``(html) -> Extraction | None``. A rule only
returns counts inside the plausible range; out-of-range candidates are
skipped and the rule keeps scanning. Rule order lives in
``waitline.extraction.extractor.RULES``.
"""

import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Callable, Iterable, Iterator

from bs4 import BeautifulSoup

from waitline.datasource.models import FacilityStatus

MIN_PLAUSIBLE_PATIENTS = 0
MAX_PLAUSIBLE_PATIENTS = 50


@dataclass(frozen=True)
class Extraction:
    """Result of a successful rule."""

    patients_in_line: int
    status: FacilityStatus
    rule: str


Rule = Callable[[str], "Extraction | None"]


def is_plausible(count: int) -> bool:
    return MIN_PLAUSIBLE_PATIENTS <= count <= MAX_PLAUSIBLE_PATIENTS


@lru_cache(maxsize=16)
def visible_text(html: str) -> str:
    """Page text with script/style removed, one non-blank line per block."""
    if not html:
        return ""
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(["script", "style", "noscript", "template"]):
        tag.decompose()
    text = soup.get_text(separator="\n")
    lines = (line.strip() for line in text.splitlines())
    return "\n".join(line for line in lines if line)


def _window(text: str, start: int, end: int, radius: int) -> str:
    return text[max(0, start - radius) : min(len(text), end + radius)]


def _plausible_matches(
    patterns: Iterable[re.Pattern[str]], text: str
) -> Iterator[tuple[int, re.Match[str]]]:
    """Yield (count, match) for in-range captures, pattern order then position."""
    for pattern in patterns:
        for match in pattern.finditer(text):
            try:
                count = int(match.group(1))
            except (TypeError, ValueError):
                continue
            if is_plausible(count):
                yield count, match


def _open(count: int, rule: str) -> Extraction:
    return Extraction(patients_in_line=count, status=FacilityStatus.OPEN, rule=rule)


# ── 1. Site-family DOM / JS patterns ─────────────────────────────────────────

CURRENT_INLINE_ID = re.compile(r"^current-inline", re.IGNORECASE)

SITE_SPECIFIC_PATTERNS = tuple(
    re.compile(p, re.IGNORECASE)
    for p in (
        r"getElementById\s*\(\s*['\"]current-inline[^'\"]*['\"]\s*\)\s*"
        r"\.(?:innerHTML|textContent|innerText)\s*=\s*['\"]?(\d+)",
        r"current-inline-\d+['\"][^>]*>\s*(\d+)\s*<",
        r"<span[^>]*\bid\s*=\s*['\"]?current-inline[^>]*>\s*(\d+)\s*</span>",
    )
)


def site_specific_counter(html: str) -> Extraction | None:
    """The ``current-inline-<hospital id>`` counter used by ClockwiseMD pages."""
    soup = BeautifulSoup(html, "html.parser")
    for element in soup.find_all(id=CURRENT_INLINE_ID):
        value = element.get_text(strip=True)
        if value.isdigit() and is_plausible(int(value)):
            return _open(int(value), "site_specific_counter")

    for count, _ in _plausible_matches(SITE_SPECIFIC_PATTERNS, html):
        return _open(count, "site_specific_counter")
    return None


# ── 2. Generic JS variable / data attribute assignments ──────────────────────

JS_VARIABLE_PATTERNS = tuple(
    re.compile(p, re.IGNORECASE)
    for p in (
        r"var\s+currentPatients\s*=\s*(\d+)",
        r"currentPatientsInLine\s*[:=]\s*['\"]?(\d+)",
        r"\bpatientsInLine\s*[:=]\s*['\"]?(\d+)",
        r"['\"]?(?:current_)?patients_in_line['\"]?\s*:\s*(\d+)",
        r"\bqueueLength\s*[:=]\s*['\"]?(\d+)",
        r"\bwaitingPatients\s*[:=]\s*['\"]?(\d+)",
        r"data-patients(?:-in-line)?\s*=\s*['\"]?(\d+)",
        r"data-queue(?:-length)?\s*=\s*['\"]?(\d+)",
    )
)


def js_variable_assignment(html: str) -> Extraction | None:
    """``currentPatientsInLine = N``, ``queueLength: N`` and friends."""
    for count, _ in _plausible_matches(JS_VARIABLE_PATTERNS, html):
        return _open(count, "js_variable_assignment")
    return None


# ── 3. Numbers near the "Patients In Line" label ─────────────────────────────

PROXIMITY_LABEL = re.compile(r"patients\s+in\s+line", re.IGNORECASE)
PROXIMITY_RADIUS = 200
PROXIMITY_CONTEXT = 50
PROXIMITY_NUMBER = re.compile(r"\b(\d{1,4})\b")
PROXIMITY_EXCLUSIONS = re.compile(
    r"\b(?:year|month|day|hour|phone|address|zip|menu|nav|link|call|fax|suite|ste)"
    r"|\b(?:19|20)\d{2}\b",
    re.IGNORECASE,
)
# Digit runs glued to another number by / : . - are dates, times, phones
NUMBER_JOINERS = "/:.-"


def _is_part_of_compound_number(text: str, start: int, end: int) -> bool:
    before = text[start - 2 : start] if start >= 2 else ""
    after = text[end : end + 2]
    if len(before) == 2 and before[1] in NUMBER_JOINERS and before[0].isdigit():
        return True
    if len(after) == 2 and after[0] in NUMBER_JOINERS and after[1].isdigit():
        return True
    return False


def patients_in_line_proximity(html: str) -> Extraction | None:
    """
    Nearest plausible integer within the window around the label.

    Candidates are ranked by distance to the label (earlier wins a tie) and
    rejected when their own context looks like a date, address or navigation.
    """
    text = visible_text(html)
    for label in PROXIMITY_LABEL.finditer(text):
        win_start = max(0, label.start() - PROXIMITY_RADIUS)
        area = text[win_start : min(len(text), label.end() + PROXIMITY_RADIUS)]
        label_start = label.start() - win_start
        label_end = label.end() - win_start

        candidates = []
        for match in PROXIMITY_NUMBER.finditer(area):
            if match.end() <= label_start:
                distance = label_start - match.end()
            elif match.start() >= label_end:
                distance = match.start() - label_end
            else:
                continue
            candidates.append((distance, match.start(), match))

        for _, _, match in sorted(candidates, key=lambda c: (c[0], c[1])):
            count = int(match.group(1))
            if not is_plausible(count):
                continue
            if _is_part_of_compound_number(area, match.start(), match.end()):
                continue
            context = _window(area, match.start(), match.end(), PROXIMITY_CONTEXT)
            if PROXIMITY_EXCLUSIONS.search(context):
                continue
            return _open(count, "patients_in_line_proximity")
    return None


# ── 4. Generic phrases ───────────────────────────────────────────────────────

PHRASE_PATTERNS = tuple(
    re.compile(p, re.IGNORECASE)
    for p in (
        r"currently\s+(\d+)\s+in\s+line",
        r"(?:patients?\s+in\s+line|in\s+line)\s*:?\s*(\d+)\b",
        r"(\d+)\s+patients?\s+(?:currently\s+)?in\s+line",
        r"(\d+)\s+(?:patients?|people)\s+(?:currently\s+)?waiting",
        r"(?:currently|now)\s+(\d+)\s+patients?\s+(?:in\s+line|waiting)",
        r"queue\s*:?\s*(\d+)\s+patients?",
        r"(\d+)\s+(?:people|patients?)\s+(?:ahead|in\s+front)",
        r"waiting\s+(?:room|queue)\s*:?\s*(\d+)\b",
        r"checked[\s-]*in\s*:?\s*(\d+)\b",
        r"(\d+)\s+checked[\s-]*in",
        r"(?:status|current)\s*:?\s*(\d+)\s+(?:patients?|people)\s+(?:waiting|in\s+line)",
    )
)
PHRASE_CONTEXT = 100
PHRASE_EXCLUSIONS = (
    "nav",
    "menu",
    "header",
    "footer",
    "href",
    "javascript",
    "onclick",
    "class=",
    "<a ",
    "<div",
    "<img",
    "patient portal",
    "plan-your-visit",
    "plan your visit",
    "tabindex",
    "contact",
    "about",
)


def generic_phrase(html: str) -> Extraction | None:
    """"N patients in line", "N people waiting", "checked in: N", ..."""
    text = visible_text(html)
    for count, match in _plausible_matches(PHRASE_PATTERNS, text):
        context = _window(text, match.start(), match.end(), PHRASE_CONTEXT).lower()
        if any(token in context for token in PHRASE_EXCLUSIONS):
            continue
        return _open(count, "generic_phrase")
    return None


# ── 5. No-wait phrases ───────────────────────────────────────────────────────

NO_WAIT_PATTERNS = tuple(
    re.compile(p, re.IGNORECASE)
    for p in (
        r"\bno\s+wait\b",
        r"\bno\s+waiting\b",
        r"walk\s+right\s+in",
        r"available\s+now",
        r"\b0\s+patients?\s+in\s+line",
        r"\b0\s+patients?\s+waiting",
        r"no\s+one\s+(?:is\s+)?waiting",
        r"empty\s+waiting\s+room",
    )
)


def no_wait_phrase(html: str) -> Extraction | None:
    """"No wait", "walk right in" -> zero patients, open."""
    text = visible_text(html)
    for pattern in NO_WAIT_PATTERNS:
        if pattern.search(text):
            return _open(0, "no_wait_phrase")
    return None


# ── 6. Closed-facility phrases ───────────────────────────────────────────────

CLOSED_PATTERNS = tuple(
    re.compile(p, re.IGNORECASE)
    for p in (
        r"(?:facility|location|clinic|urgent\s+care)\s+(?:is\s+)?(?:currently\s+)?closed",
        r"(?:temporarily|permanently)\s+closed",
        r"closed\s+(?:for|until|today|now)\b",
        r"we\s+are\s+(?:currently\s+)?closed",
        r"location\s+(?:is\s+)?not\s+available",
        r"service\s+(?:is\s+)?unavailable",
        r"no\s+longer\s+accepting\s+patients",
        r"hours\s*:\s*closed",
        r"status\s*:\s*closed",
    )
)
CLOSED_FALSE_POSITIVES = re.compile(
    r"\b(?:keep|door|doors|gate|gates|window|windows|please|remember|always|ensure|policy|safety)\b",
    re.IGNORECASE,
)
SENTENCE_BREAK = re.compile(r"[.!?\n]")
CLOSED_LOOKBACK = 100


def _sentence_lead_in(text: str, match: re.Match[str]) -> str:
    """Text from the start of the match's sentence through the match."""
    start = max(0, match.start() - CLOSED_LOOKBACK)
    lead = text[start : match.start()]
    breaks = list(SENTENCE_BREAK.finditer(lead))
    if breaks:
        lead = lead[breaks[-1].end() :]
    return lead + match.group(0)


def closed_phrase(html: str) -> Extraction | None:
    """Genuine closure notices; "keep the door closed" style text is ignored."""
    text = visible_text(html)
    for pattern in CLOSED_PATTERNS:
        for match in pattern.finditer(text):
            if CLOSED_FALSE_POSITIVES.search(_sentence_lead_in(text, match)):
                continue
            return Extraction(
                patients_in_line=0, status=FacilityStatus.CLOSED, rule="closed_phrase"
            )
    return None
