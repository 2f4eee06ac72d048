from loan_wizard.services.notifications import NotificationLevel, NotificationLog


def test_log_keeps_order_and_levels() -> None:
    log = NotificationLog()
    log.success("Loan application submitted successfully!")
    log.error("Failed to add guarantors")
    log.info("Prefilled from member profile")

    assert [item.level for item in log.items] == [
        NotificationLevel.SUCCESS,
        NotificationLevel.ERROR,
        NotificationLevel.INFO,
    ]
    assert [item.message for item in log.errors()] == ["Failed to add guarantors"]


def test_log_drops_oldest_over_limit() -> None:
    log = NotificationLog(limit=2)
    for number in range(3):
        log.info(f"message {number}")
    assert [item.message for item in log.items] == ["message 1", "message 2"]
    log.clear()
    assert log.items == []
