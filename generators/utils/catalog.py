"""Reference pools for synthetic transactions."""

import random

COUNTRIES = {
    "US": ["New York", "Los Angeles", "Chicago", "Houston", "Phoenix"],
    "GB": ["London", "Manchester", "Birmingham", "Leeds", "Glasgow"],
    "CA": ["Toronto", "Vancouver", "Montreal", "Calgary", "Ottawa"],
    "DE": ["Berlin", "Munich", "Hamburg", "Frankfurt", "Cologne"],
    "FR": ["Paris", "Marseille", "Lyon", "Toulouse", "Nice"],
}

HIGH_RISK_COUNTRIES = ["XX", "YY", "ZZ"]

MERCHANTS = [
    "Amazon", "Walmart", "Target", "Best Buy", "Apple Store",
    "Nike", "Starbucks", "Uber", "Netflix", "Steam",
]

DESCRIPTIONS = [
    "Online purchase",
    "In-store purchase",
    "Subscription payment",
    "Bill payment",
    "Money transfer",
    "Restaurant payment",
    "Grocery shopping",
]

DEVICE_TYPES = ["mobile", "desktop", "tablet"]


def random_location() -> tuple[str, str]:
    country = random.choice(list(COUNTRIES))
    return country, random.choice(COUNTRIES[country])


def random_high_risk_location() -> tuple[str, str]:
    return random.choice(HIGH_RISK_COUNTRIES), "Unknown"
