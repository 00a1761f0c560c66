import pytest

from authcore.infrastructure.outbox.dispatcher import RetryPolicy


@pytest.mark.parametrize(
    "attempts, expected",
    [(0, 2), (1, 4), (2, 8), (4, 32), (5, 60), (10, 60)],
)
def test_delay_doubles_until_capped(attempts, expected):
    assert RetryPolicy(base=2, max_delay=60).compute_delay(attempts) == expected
