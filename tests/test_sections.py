# tests/test_sections.py
import asyncio

import pytest

from conftest import FakeSiteProvider, make_postings

from naukri_automator.errors import AuthenticationError, SectionNotFoundError
from naukri_automator.models import Section
from naukri_automator.sections import get_sections, parse_section_label


@pytest.mark.parametrize(
    "text,expected",
    [
        ("Preferences (12)", Section("Preferences", 12)),
        ("You might like (0)", Section("You might like", 0)),
        ("  Profile\n(7) ", Section("Profile", 7)),
        ("Applies", None),
        ("(5)", None),
        ("Top candidate (many)", None),
    ],
)
def test_parse_section_label(text, expected):
    assert parse_section_label(text) == expected


def test_get_sections_lists_tabs_in_page_order(site_factory):
    site = site_factory(make_postings(1), tabs=["Recommended (30)", "Preferences (12)", "New", "Similar jobs (4)"])
    sections = asyncio.run(get_sections(FakeSiteProvider(site), "tok"))

    assert [s.as_row() for s in sections] == [
        {"name": "Recommended", "count": 30},
        {"name": "Preferences", "count": 12},
        {"name": "Similar jobs", "count": 4},
    ]
    assert site.submitted_batches == []
    assert site.tab_clicks == []
    assert site.pw_stopped == 1


def test_get_sections_no_parsable_tabs(site_factory):
    site = site_factory(make_postings(1), tabs=["Applies", "Saved"])
    with pytest.raises(SectionNotFoundError):
        asyncio.run(get_sections(FakeSiteProvider(site), "tok"))
    assert site.contexts_closed == 1


def test_get_sections_missing_tab_container(site_factory, tmp_path):
    site = site_factory(make_postings(1), tabs=[])
    provider = FakeSiteProvider(site)
    provider.root = tmp_path
    with pytest.raises(SectionNotFoundError):
        asyncio.run(get_sections(provider, "tok"))
    assert list((tmp_path / "data" / "debug").glob("naukri_get_sections_*.png"))


def test_get_sections_expired_cookie(site_factory):
    site = site_factory(make_postings(1), login_redirect=True)
    with pytest.raises(AuthenticationError):
        asyncio.run(get_sections(FakeSiteProvider(site), "tok"))
    assert site.pw_stopped == 1
