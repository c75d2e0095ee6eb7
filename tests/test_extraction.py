import pytest

from waitline.datasource.models import FacilityStatus
from waitline.extraction import (
    RULES,
    HeuristicExtractor,
    closed_phrase,
    extract,
    extract_minutes,
    generic_phrase,
    js_variable_assignment,
    no_wait_phrase,
    patients_in_line_proximity,
    site_specific_counter,
)


def test_rule_order_is_fixed() -> None:
    assert RULES == (
        site_specific_counter,
        js_variable_assignment,
        patients_in_line_proximity,
        generic_phrase,
        no_wait_phrase,
        closed_phrase,
    )


def test_site_specific_counter_element() -> None:
    html = '<div>Patients</div><span id="current-inline-13598">7</span>'
    result = extract(html)
    assert result.patients_in_line == 7
    assert result.status == FacilityStatus.OPEN
    assert result.rule == "site_specific_counter"


def test_site_specific_counter_script_assignment() -> None:
    html = "<script>document.getElementById('current-inline-12604').innerHTML = '4';</script>"
    assert site_specific_counter(html).patients_in_line == 4


def test_js_variable_assignment() -> None:
    html = "<script>var currentPatients = 5; var other = 99;</script>"
    result = extract(html)
    assert result.patients_in_line == 5
    assert result.rule == "js_variable_assignment"


def test_js_variable_json_field() -> None:
    html = '<script>window.data = {"patients_in_line": 12};</script>'
    assert js_variable_assignment(html).patients_in_line == 12


def test_proximity_finds_number_next_to_label() -> None:
    html = "<h3>Patients In Line</h3><div class='count'>6</div>"
    result = extract(html)
    assert result.patients_in_line == 6
    assert result.rule == "patients_in_line_proximity"


def test_proximity_skips_excluded_context() -> None:
    html = "<p>Patients In Line</p><p>Suite 12</p>"
    assert patients_in_line_proximity(html) is None


def test_generic_phrase_beats_no_wait_phrase() -> None:
    html = "<p>3 patients waiting</p><p>No wait for online check-ins!</p>"
    result = extract(html)
    assert result.patients_in_line == 3
    assert result.rule == "generic_phrase"


def test_implausible_count_is_rejected_and_extraction_continues() -> None:
    html = "<p>73 patients in line</p><p>4 people waiting</p>"
    result = extract(html)
    assert result.patients_in_line == 4


def test_implausible_count_alone_falls_through_to_later_rules() -> None:
    html = "<p>73 patients in line</p><p>No wait right now</p>"
    result = extract(html)
    assert result.patients_in_line == 0
    assert result.rule == "no_wait_phrase"


def test_no_wait_phrase() -> None:
    result = extract("<p>Walk right in - we're ready for you.</p>")
    assert result.patients_in_line == 0
    assert result.status == FacilityStatus.OPEN


def test_genuine_closure_is_detected() -> None:
    result = extract("<p>This location is currently closed.</p>")
    assert result.status == FacilityStatus.CLOSED
    assert result.patients_in_line == 0


@pytest.mark.parametrize(
    "html",
    [
        "<p>Remember to keep door closed for patient privacy.</p>",
        "<p>Please keep the door closed for your safety.</p>",
    ],
)
def test_closed_false_positives_are_ignored(html) -> None:
    result = extract(html)
    assert result is None or result.status != FacilityStatus.CLOSED


def test_scripts_are_not_visible_text() -> None:
    html = "<script>// 3 patients waiting</script><p>Welcome</p>"
    assert generic_phrase(html) is None


def test_empty_or_unmatched_page_returns_none() -> None:
    assert extract("") is None
    assert extract("   ") is None
    assert extract("<html><body><h1>Welcome</h1></body></html>") is None


def test_extraction_is_idempotent() -> None:
    html = "<p>Patients In Line</p><p>9</p><p>No wait</p>"
    assert extract(html) == extract(html)
    assert HeuristicExtractor().extract(html) == extract(html)


def test_counts_never_leave_plausible_range() -> None:
    pages = [
        "<p>51 patients in line</p>",
        "<script>var currentPatients = 120;</script>",
        "<span id='current-inline-1'>99</span>",
    ]
    for html in pages:
        result = extract(html)
        assert result is None or 0 <= result.patients_in_line <= 50


@pytest.mark.parametrize(
    "text, expected",
    [
        ("15 min", 15),
        ("Wait: 20", 20),
        ("1 hour 30 min", 90),
        ("2 hours", 120),
        ("45 minutes", 45),
        ("soon", None),
        (None, None),
    ],
)
def test_extract_minutes(text, expected) -> None:
    assert extract_minutes(text) == expected
