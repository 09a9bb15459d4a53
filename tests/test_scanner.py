# tests/test_scanner.py
import asyncio

from conftest import FakePage, FakeSite, fast_timeouts, make_postings

from naukri_automator.models import AppliedSet, JobPosting
from naukri_automator.scanner import partition_postings, read_postings, scan_candidates


def _page(postings):
    page = FakePage(FakeSite(postings))
    page.rendered = True
    return page


def test_prior_ids_are_excluded():
    applied = AppliedSet(["J1", "J2"])
    page = _page(make_postings(3))

    candidates = asyncio.run(scan_candidates(page, applied, timeouts=fast_timeouts()))

    assert [c.job_id for c in candidates] == ["J3"]


def test_read_postings_keeps_page_order_and_skips_missing_ids():
    postings = make_postings(3, no_checkbox=("J2",)) + [{"id": "", "checkbox": True}]
    page = _page(postings)

    got = asyncio.run(read_postings(page, timeouts=fast_timeouts()))

    assert got == [
        JobPosting("J1", True),
        JobPosting("J2", False),
        JobPosting("J3", True),
    ]


def test_no_checkbox_posting_is_absorbed_once():
    applied = AppliedSet()
    page = _page(make_postings(4, no_checkbox=("J2",)))
    lines = []

    first = asyncio.run(scan_candidates(page, applied, timeouts=fast_timeouts(), log=lines.append))
    second = asyncio.run(scan_candidates(page, applied, timeouts=fast_timeouts(), log=lines.append))

    assert [c.job_id for c in first] == ["J1", "J3", "J4"]
    assert [c.job_id for c in second] == ["J1", "J3", "J4"]
    assert "J2" in applied.skipped_ids
    assert applied.session_ids == []
    assert sum("J2 has no checkbox" in ln for ln in lines) == 1


def test_duplicate_ids_within_one_scan_are_collapsed():
    postings = [JobPosting("J1"), JobPosting("J1"), JobPosting("J2")]
    assert [c.job_id for c in partition_postings(postings, AppliedSet())] == ["J1", "J2"]


def test_empty_page_is_not_an_error():
    assert asyncio.run(scan_candidates(_page([]), AppliedSet(), timeouts=fast_timeouts())) == []
