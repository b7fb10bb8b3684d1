from uuid import uuid4

from salon_api.rate_limiter import check_rate_limit


def unique_key() -> str:
    return f"test:{uuid4().hex}"


def test_allows_up_to_limit_then_blocks():
    key = unique_key()

    results = [check_rate_limit(key, limit=3, window_seconds=60) for _ in range(4)]

    assert [allowed for allowed, _, _ in results] == [True, True, True, False]
    assert results[-1][1] == 3
    assert 0 < results[-1][2] <= 60


def test_keys_are_independent():
    first, second = unique_key(), unique_key()
    check_rate_limit(first, limit=1, window_seconds=60)

    assert not check_rate_limit(first, limit=1, window_seconds=60)[0]
    assert check_rate_limit(second, limit=1, window_seconds=60)[0]
