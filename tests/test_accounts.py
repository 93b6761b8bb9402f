from conftest import AXIS_DEBIT, HDFC_CREDIT, HDFC_DEBIT, ICICI_DEBIT, UPI_SENT, make_sms
from money_manager import database
from money_manager.accounts import AccountDetector
from money_manager.core.categorizer import learn_mapping


def test_detect_bank_display_names():
    assert AccountDetector.detect_bank(make_sms(1, "AD-HDFCBK", "")) == "HDFC"
    assert AccountDetector.detect_bank(make_sms(2, "AX-AXISBK", "")) == "Axis"
    assert AccountDetector.detect_bank(make_sms(3, "GPAY", "")) == "Paytm"
    assert AccountDetector.detect_bank(make_sms(4, "PhonePe", "")) == "PhonePe"
    assert AccountDetector.detect_bank(make_sms(5, "JM-FRIEND", "")) == "Other"


def test_process_sms_creates_account_and_transaction(db_path):
    detector = AccountDetector(db_path)
    result = detector.process_sms(make_sms("s1", "AD-HDFCBK", HDFC_DEBIT), "u1")

    assert result.success
    assert result.account_created
    assert result.bank == "HDFC"

    account = database.get_account(db_path, result.account_id)
    assert account.bank_name == "HDFC"
    assert account.account_number == "1234"
    assert account.balance == 50000.0
    assert account.created_from_sms

    tx = database.get_transaction(db_path, result.transaction_id)
    assert tx.amount == 1250.0
    assert tx.type == "debit"
    assert tx.merchant == "AMAZON.COM"
    assert tx.tags == ["sms_hdfc"]
    assert tx.notes == "SMS from HDFC"
    assert tx.is_expense and not tx.is_income
    assert tx.sms_id == "s1"
    assert tx.reference == "TXN123456"
    assert database.get_category(db_path, tx.category_id).name == "Shopping"


def test_accounts_matched_by_last_digits(db_path):
    detector = AccountDetector(db_path)
    debit = detector.process_sms(make_sms("s1", "AD-HDFCBK", HDFC_DEBIT), "u1")
    credit = detector.process_sms(make_sms("s2", "AD-HDFCBK", HDFC_CREDIT), "u1")
    again = detector.process_sms(
        make_sms("s3", "AD-HDFCBK", "Rs.99 debited from card xx1234 at Chai Point. Bal: Rs.49,901"), "u1"
    )

    assert credit.account_created
    assert credit.account_id != debit.account_id
    assert not again.account_created
    assert again.account_id == debit.account_id
    assert database.get_account(db_path, debit.account_id).balance == 49901.0

    income = database.get_transaction(db_path, credit.transaction_id)
    assert income.is_income and not income.is_expense
    assert income.merchant == "Unknown"


def test_account_without_number_reuses_latest_for_bank(db_path):
    detector = AccountDetector(db_path)
    first = detector.process_sms(make_sms("s1", "VM-ICICIB", ICICI_DEBIT), "u1")
    second = detector.process_sms(
        make_sms("s2", "VM-ICICIB", ICICI_DEBIT.replace("ABC123", "ABC124")), "u1"
    )
    assert first.account_created
    assert database.get_account(db_path, first.account_id).account_number.startswith("ICICI_")
    assert second.account_id == first.account_id
    assert not second.account_created


def test_failed_parse_creates_nothing(db_path):
    detector = AccountDetector(db_path)
    result = detector.process_sms(make_sms("s1", "AD-HDFCBK", "Your OTP is 123456"), "u1")
    assert not result.success
    assert "Failed to parse" in result.error
    assert database.get_accounts(db_path, "u1") == []


def test_duplicate_sms_is_not_stored_twice(db_path):
    detector = AccountDetector(db_path)
    first = detector.process_sms(make_sms("s1", "AX-AXISBK", AXIS_DEBIT), "u1")
    second = detector.process_sms(make_sms("s1", "AX-AXISBK", AXIS_DEBIT), "u1")
    assert second.success
    assert second.duplicate
    assert second.transaction_id == first.transaction_id
    assert database.get_transactions(db_path, "u1")["total"] == 1


def test_learned_mapping_used_for_category(db_path):
    learn_mapping(db_path, "u1", "Rohan", "Gifts")
    detector = AccountDetector(db_path)
    result = detector.process_sms(make_sms("s1", "GPAY", UPI_SENT), "u1")
    tx = database.get_transaction(db_path, result.transaction_id)
    assert tx.type == "upi"
    assert tx.is_expense
    assert database.get_category(db_path, tx.category_id).name == "Gifts"


def test_process_multiple_sms(db_path):
    detector = AccountDetector(db_path)
    batch = detector.process_multiple_sms([
        make_sms("s1", "AD-HDFCBK", HDFC_DEBIT),
        make_sms("s2", "AX-AXISBK", AXIS_DEBIT),
        make_sms("s3", "AD-HDFCBK", "Your OTP is 123456"),
    ], "u1")
    assert batch.total == 3
    assert batch.successful == 2
    assert batch.failed == 1
    assert len(batch.new_accounts) == 2
    assert [r.success for r in batch.results] == [True, True, False]
