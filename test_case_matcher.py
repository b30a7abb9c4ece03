from datetime import date

from case_matcher import in_date_range, matches, query_terms
from models import Case, CaseStatus, UtilityType


def _case(company: str = "Idaho Power Company", description: str = "") -> Case:
    return Case(
        case_number="IPC-E-24-07",
        company=company,
        description=description,
        listing_url="https://puc.idaho.gov/case/Details/7001",
        utility_type=UtilityType.ELECTRIC,
        status=CaseStatus.OPEN,
    )


def test_query_terms_drop_short_tokens_and_duplicates():
    assert query_terms("Rate case, rate of return") == ["rate", "case", "return"]


def test_verbatim_query_matches():
    assert matches(_case(description="Application for a general rate case"), "rate case")


def test_matching_is_case_insensitive_across_company_and_description():
    case = _case(company="Avista Corporation", description="Natural gas GENERAL RATE case")
    assert matches(case, "avista general rate")


def test_most_terms_must_appear():
    case = _case(description="general rate case increase")
    # 3 of 4 terms present meets the 75% bar
    assert matches(case, "rate case increase solar")
    # 2 of 4 does not
    assert not matches(case, "rate case solar wind")


def test_short_terms_fall_back_to_verbatim():
    case = _case(description="Tariff advice no. 24-03")
    assert matches(case, "no. 24")
    assert not matches(case, "a b")


def test_blank_query_never_matches():
    assert not matches(_case(description="anything"), "   ")


def test_in_date_range_is_inclusive():
    start, end = date(2024, 1, 1), date(2024, 12, 31)
    assert in_date_range(date(2024, 1, 1), start, end)
    assert in_date_range(date(2024, 12, 31), start, end)
    assert in_date_range("3/15/2024", start, end)
    assert in_date_range("2024-06-30", start, end)
    assert not in_date_range("12/31/2023", start, end)
    assert not in_date_range(date(2025, 1, 1), start, end)


def test_in_date_range_missing_or_bad_dates_do_not_match():
    start, end = date(2024, 1, 1), date(2024, 12, 31)
    assert not in_date_range(None, start, end)
    assert not in_date_range("", start, end)
    assert not in_date_range("pending", start, end)
    assert not in_date_range("13/45/2024", start, end)
