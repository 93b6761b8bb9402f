from money_manager.database import (
    compare_spend_between_periods,
    fetch_transactions,
    get_accounts,
    get_categories,
    get_processed_sms_ids,
    get_transactions,
    summarize_by_category,
    summarize_by_merchant,
    summarize_by_period,
)


def test_empty_db_queries(tmp_path):
    db_path = str(tmp_path / "empty.db")

    assert get_accounts(db_path, "u1") == []
    assert get_categories(db_path, "u1") == []
    assert get_processed_sms_ids(db_path) == set()
    assert fetch_transactions(db_path, "u1") == []
    assert summarize_by_category(db_path, "u1") == []
    assert summarize_by_period(db_path, "u1", period="month") == []
    assert summarize_by_merchant(db_path, "u1") == []

    page = get_transactions(db_path, "u1")
    assert page["data"] == []
    assert page["total"] == 0
    assert page["has_more"] is False

    comparison = compare_spend_between_periods(db_path, "u1", None, None, None, None)
    assert comparison["difference"] == 0.0
    assert comparison["percent_change"] is None
