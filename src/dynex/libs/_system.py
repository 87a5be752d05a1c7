## Copyright © 2025, Alex J. Champandard.  Licensed under AGPLv3; see LICENSE! ⚘

import os
import math
import random


class Random:
    """Pseudo-random number generator; seeded instances produce repeatable sequences."""

    def __init__(self, seed: int | None = None):
        self._rng = random.Random(seed)

    def next(self, max_value: int = 2**31 - 1) -> int:
        if max_value < 0:
            raise ValueError("'maxValue' must be greater than or equal to zero.")
        return self._rng.randrange(max_value) if max_value > 0 else 0

    def next_in_range(self, min_value: int, max_value: int) -> int:
        if min_value > max_value:
            raise ValueError("'minValue' cannot be greater than maxValue.")
        return self._rng.randrange(min_value, max_value) if max_value > min_value else min_value

    def next_double(self) -> float:
        return self._rng.random()


class Math:
    __static__ = True

    PI: float = math.pi
    E: float = math.e

    @staticmethod
    def abs(value: float) -> float: return abs(value)
    @staticmethod
    def min(a: float, b: float) -> float: return min(a, b)
    @staticmethod
    def max(a: float, b: float) -> float: return max(a, b)
    @staticmethod
    def sqrt(value: float) -> float: return math.sqrt(value) if value >= 0 else math.nan
    @staticmethod
    def pow(x: float, y: float) -> float: return math.pow(x, y)
    @staticmethod
    def floor(value: float) -> float: return float(math.floor(value))
    @staticmethod
    def ceiling(value: float) -> float: return float(math.ceil(value))
    @staticmethod
    def round(value: float) -> float: return float(round(value))
    @staticmethod
    def clamp(value: float, low: float, high: float) -> float: return max(low, min(value, high))


class Convert:
    __static__ = True

    @staticmethod
    def to_int32(value: object) -> int:
        if isinstance(value, str): return int(value.strip())
        if isinstance(value, float): return int(round(value))
        return int(value)

    @staticmethod
    def to_double(value: object) -> float:
        return float(value.strip() if isinstance(value, str) else value)

    @staticmethod
    def to_boolean(value: object) -> bool:
        if isinstance(value, str):
            if value.strip().lower() not in ('true', 'false'):
                raise ValueError("String was not recognized as a valid Boolean.")
            return value.strip().lower() == 'true'
        return bool(value)


__namespace__ = "System"
__types__ = [ Random, Math, Convert ]

if os.environ.get('DYNEX_DEBUG'): print('LOADED libs/_system.py')
