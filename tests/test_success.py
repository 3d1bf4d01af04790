"""Tests for the submit outcome signal."""

import pytest

from conftest import FakeDocument, FakeElement, FakePage
from navcrawl.success import Outcome, SuccessSignal

FORM = "https://app.test/clients/new"


def document_showing(location=FORM, **indicators):
    page = FakePage()
    for selector, text in indicators.items():
        page.add(selector, FakeElement(text=text, index=1))
    return FakeDocument({location: page}, location=location)


class TestSuccessSignal:
    """Tests for SuccessSignal.evaluate."""

    @pytest.mark.asyncio
    async def test_success_indicator(self):
        """Test an explicit success alert yields SUCCESS."""
        document = document_showing(**{'[class*="alert-success"]': "Client created"})

        outcome, evidence = await SuccessSignal().evaluate(document, FORM)

        assert outcome == Outcome.SUCCESS
        assert evidence == "client created"

    @pytest.mark.asyncio
    async def test_error_wins_over_success(self):
        """Test an error indicator wins when both are visible."""
        document = document_showing(**{
            '[class*="alert-success"]': "Saved",
            '[aria-invalid="true"]': "",
        })

        outcome, _ = await SuccessSignal().evaluate(document, FORM)

        assert outcome == Outcome.ERROR

    @pytest.mark.asyncio
    async def test_generic_alert_needs_matching_text(self):
        """Test role=alert only counts when its text names the outcome."""
        neutral = document_showing(**{'[role="alert"]': "Welcome back"})
        failed = document_showing(**{'[role="alert"]': "Name is required"})

        assert (await SuccessSignal().evaluate(neutral, FORM))[0] == Outcome.UNKNOWN
        assert (await SuccessSignal().evaluate(failed, FORM))[0] == Outcome.ERROR

    @pytest.mark.asyncio
    async def test_hidden_indicator_ignored(self):
        """Test invisible indicators are ignored."""
        page = FakePage()
        page.add('[class*="alert-danger"]', FakeElement(text="Error", visible=False))
        document = FakeDocument({FORM: page}, location=FORM)

        outcome, _ = await SuccessSignal().evaluate(document, FORM)

        assert outcome == Outcome.UNKNOWN

    @pytest.mark.asyncio
    async def test_url_change_ignored_by_default(self):
        """Test leaving the form URL alone is not evidence of success."""
        document = document_showing(location="https://app.test/clients/42")

        outcome, _ = await SuccessSignal().evaluate(document, FORM)

        assert outcome == Outcome.UNKNOWN

    @pytest.mark.asyncio
    async def test_url_heuristic_is_inferred(self):
        """Test the opt-in URL heuristic yields INFERRED, never SUCCESS."""
        moved = document_showing(location="https://app.test/clients/42")
        stayed = document_showing(location="https://app.test/clients/new?error=1")
        signal = SuccessSignal(allow_url_heuristic=True)

        assert (await signal.evaluate(moved, FORM))[0] == Outcome.INFERRED
        assert (await signal.evaluate(stayed, FORM))[0] == Outcome.UNKNOWN

    @pytest.mark.asyncio
    async def test_hung_indicator_query_is_a_miss(self):
        """Test an indicator query that never answers times out and the next one is tried."""
        document = document_showing(**{'[class*="alert-success"]': "Client created"})
        document.slow_selectors.add('[class*="alert-danger"]')

        outcome, evidence = await SuccessSignal(timeout_ms=50).evaluate(document, FORM)

        assert outcome == Outcome.SUCCESS
        assert evidence == "client created"
