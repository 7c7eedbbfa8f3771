"""Unit tests for preview helpers"""

from portfolio_assistant.domain.preview import PortfolioOption, default_portfolio_id


def test_default_portfolio_skips_retired():
    portfolios = [PortfolioOption(1, "Alt", is_retired=True), PortfolioOption(2, "Haupt")]

    assert default_portfolio_id(portfolios) == 2


def test_default_portfolio_falls_back_to_first_when_all_retired():
    portfolios = [PortfolioOption(1, "Alt", is_retired=True), PortfolioOption(2, "Älter", is_retired=True)]

    assert default_portfolio_id(portfolios) == 1


def test_no_portfolios_means_no_default():
    assert default_portfolio_id([]) is None
