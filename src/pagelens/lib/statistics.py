"""
Scoring curves for numeric audits.
"""

from __future__ import annotations

import math
import sys

# The inverse of erfc(x) at 1/5: the standardized distance of the p10 point.
INVERSE_ERFC_ONE_FIFTH = 0.9061938024368232


def get_log_normal_score(p10: float, median: float, value: float) -> float:
    """
    Score ``value`` on a log-normal curve with the given 10th percentile and median.

    ``value == p10`` scores 0.9 and ``value == median`` scores 0.5. Lower values are
    better. The result is clamped into the band of its region so that rounding can
    never move a value across the p10 or median boundary.
    """
    if median <= 0:
        raise ValueError("median must be greater than zero")
    if p10 <= 0:
        raise ValueError("p10 must be greater than zero")
    if p10 >= median:
        raise ValueError("p10 must be less than the median")

    if value <= 0:
        return 1.0

    x_log_ratio = math.log(max(sys.float_info.min, value / median))
    p10_log_ratio = -math.log(max(sys.float_info.min, p10 / median))
    standardized_x = x_log_ratio * INVERSE_ERFC_ONE_FIFTH / p10_log_ratio
    complementary_percentile = (1 - math.erf(standardized_x)) / 2

    if value <= p10:
        score = max(0.9, min(1.0, complementary_percentile))
    elif value <= median:
        score = max(0.5, min(0.8999999999999999, complementary_percentile))
    else:
        score = max(0.0, min(0.49999999999999994, complementary_percentile))
    return score
