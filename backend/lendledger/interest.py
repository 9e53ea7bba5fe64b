"""Simple (non-compounding) interest accrual.

Rates are annual and expressed in basis points; time is in seconds and a
year is 365 days. Results are whole token units, rounded down.
"""

SECONDS_PER_YEAR = 365 * 24 * 60 * 60
BASIS_POINTS = 10_000


def simple_interest(principal: int, rate_bps: int, elapsed: int) -> int:
    """Interest earned by `principal` over `elapsed` seconds."""
    if elapsed <= 0 or principal <= 0 or rate_bps <= 0:
        return 0
    return principal * rate_bps * elapsed // (BASIS_POINTS * SECONDS_PER_YEAR)


def accrued_between(
    principal: int,
    rate_bps: int,
    start: int,
    since: int,
    until: int,
) -> int:
    """
    Interest accrued between `since` and `until` on a position opened at `start`.

    Computed as the difference of the totals since `start`, so that splitting
    an interval into many refreshes never loses the rounding remainder.
    """
    if until <= since:
        return 0
    return simple_interest(principal, rate_bps, until - start) - simple_interest(
        principal, rate_bps, since - start
    )
