from datetime import date

import pytest

from money_manager import dues


def test_create_due_validates(db_path):
    with pytest.raises(ValueError):
        dues.create_due(db_path, "u1", "Asha", 500, "2025-12-10", due_type="loan")
    with pytest.raises(ValueError):
        dues.create_due(db_path, "u1", "Asha", 0, "2025-12-10")
    with pytest.raises(ValueError):
        dues.create_due(db_path, "u1", "Asha", 500, "next week")

    due = dues.create_due(db_path, "u1", "Asha", 500, "2025-12-10", due_type="credit", notes="dinner")
    assert due.due_date == date(2025, 12, 10)
    assert due.status == "pending"
    assert due.reminder_days_before == 1


def test_dues_are_enriched_and_filtered(db_path):
    today = date(2025, 12, 10)
    overdue = dues.create_due(db_path, "u1", "Asha", 500, "2025-12-08")
    due_today = dues.create_due(db_path, "u1", "Ben", 100, "2025-12-10")
    soon = dues.create_due(db_path, "u1", "Chris", 200, "2025-12-15")
    later = dues.create_due(db_path, "u1", "Dev", 300, "2025-12-25")

    by_id = {d.id: d for d in dues.get_dues(db_path, "u1", today)}
    assert by_id[overdue.id].days_due == -2
    assert by_id[overdue.id].is_overdue
    assert by_id[due_today.id].days_due == 0
    assert not by_id[due_today.id].is_overdue
    assert by_id[later.id].days_due == 15

    assert [d.id for d in dues.get_overdue_dues(db_path, "u1", today)] == [overdue.id]
    assert [d.id for d in dues.get_upcoming_dues(db_path, "u1", today=today)] == [soon.id]


def test_complete_and_delete(db_path):
    today = date(2025, 12, 10)
    due = dues.create_due(db_path, "u1", "Asha", 500, "2025-12-01")
    completed = dues.complete_due(db_path, due.id)
    assert completed.status == "completed"
    assert dues.get_overdue_dues(db_path, "u1", today) == []

    dues.delete_due(db_path, due.id)
    assert dues.get_dues(db_path, "u1", today) == []
