"""Sampling helpers for synthetic transaction fields."""

import random
from datetime import datetime


def sample_amount(mu: float, sigma: float, floor: float = 1.0, cap: float = 5000.0) -> float:
    """Log-normal purchase amount in dollars, clipped and rounded to cents."""
    return round(min(max(random.lognormvariate(mu, sigma), floor), cap), 2)


def sample_high_amount(threshold: float = 50_000.0, ceiling: float = 150_000.0) -> float:
    """An amount strictly above the alerting threshold."""
    return round(random.uniform(threshold + 1, ceiling), 2)


def shift_to_late_night(when: datetime, end_hour: int = 6) -> datetime:
    return when.replace(hour=random.randrange(0, end_hour), minute=random.randrange(60))


def random_ipv4() -> str:
    octets = (
        random.randint(1, 223),
        random.randint(0, 255),
        random.randint(0, 255),
        random.randint(1, 254),
    )
    return ".".join(str(o) for o in octets)
