from sizefit.compression import CancellationToken, MonotonicProgress


def test_reports_are_clamped_and_never_decrease():
    seen = []
    progress = MonotonicProgress(seen.append)

    for value in (10, 5, 150, -3, 40):
        progress.report(value)

    assert seen == [10, 10, 100, 100, 100]
    assert progress.last == 100


def test_report_attempts_rounds_share_of_budget():
    seen = []
    progress = MonotonicProgress(seen.append)

    progress.report_attempts(1, 3)
    progress.report_attempts(2, 3)

    assert seen == [33, 67]


def test_none_callback_is_a_no_op():
    progress = MonotonicProgress(None)
    progress.report(50)

    assert progress.last == 50


def test_cancellation_token():
    token = CancellationToken()
    assert not token.cancelled

    token.cancel()
    assert token.cancelled
