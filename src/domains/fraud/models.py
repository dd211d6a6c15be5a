"""Pydantic models for the fraud domain."""

import random
import string
import time
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class TransactionStatus(StrEnum):
    SAFE = "SAFE"
    SUSPICIOUS = "SUSPICIOUS"
    FRAUD = "FRAUD"


class PaymentMethod(StrEnum):
    CREDIT_CARD = "CREDIT_CARD"
    DEBIT_CARD = "DEBIT_CARD"
    BANK_TRANSFER = "BANK_TRANSFER"
    DIGITAL_WALLET = "DIGITAL_WALLET"
    OTHER = "OTHER"


class Severity(StrEnum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class AlertStatus(StrEnum):
    ACTIVE = "ACTIVE"
    ACKNOWLEDGED = "ACKNOWLEDGED"
    RESOLVED = "RESOLVED"
    DISMISSED = "DISMISSED"


class IngestSource(StrEnum):
    """Where a transaction entered the system; selects the duplicate policy."""

    API = "api"
    CONSUMER = "consumer"


class Operator(StrEnum):
    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    GREATER_EQUAL = "greater_equal"
    LESS_EQUAL = "less_equal"
    CONTAINS = "contains"
    NOT_CONTAINS = "not_contains"
    IN = "in"
    NOT_IN = "not_in"


class ActionType(StrEnum):
    FLAG = "flag"
    SCORE_ADJUSTMENT = "score_adjustment"
    BLOCK = "block"
    REVIEW = "review"
    ALERT = "alert"


class WireModel(BaseModel):
    """Accepts both snake_case and the camelCase names used on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def generate_transaction_id() -> str:
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=9))
    return f"TXN_{int(time.time() * 1000)}_{suffix}"


class Location(WireModel):
    country: str | None = Field(default=None, max_length=100)
    city: str | None = Field(default=None, max_length=100)
    ip_address: str | None = None


class Flag(BaseModel):
    type: str = "RULE_VIOLATION"
    reason: str = ""
    severity: Severity = Severity.MEDIUM
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))


class TransactionCreate(WireModel):
    transaction_id: str | None = Field(default=None, min_length=1, max_length=100)
    user_id: str = Field(min_length=1, max_length=100)
    amount: float = Field(ge=0, le=1_000_000)
    currency: str = Field(default="USD", min_length=3, max_length=3)
    timestamp: datetime | None = None
    status: TransactionStatus | None = None
    risk_score: int | None = Field(default=None, ge=0, le=100)
    description: str | None = Field(default=None, max_length=500)
    merchant_id: str | None = Field(default=None, max_length=100)
    merchant_name: str | None = Field(default=None, max_length=200)
    payment_method: PaymentMethod = PaymentMethod.OTHER
    location: Location | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    @field_validator("currency")
    @classmethod
    def _upper_currency(cls, v: str) -> str:
        return v.upper()


class TransactionUpdate(WireModel):
    status: TransactionStatus | None = None
    risk_score: int | None = Field(default=None, ge=0, le=100)
    description: str | None = Field(default=None, max_length=500)
    merchant_id: str | None = Field(default=None, max_length=100)
    merchant_name: str | None = Field(default=None, max_length=200)
    payment_method: PaymentMethod | None = None
    location: Location | None = None
    metadata: dict[str, Any] | None = None
    notes: str | None = Field(default=None, max_length=1000)


class ReviewNotes(BaseModel):
    notes: str | None = Field(default=None, max_length=1000)


class Condition(BaseModel):
    field: str = Field(pattern=r"^[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)*$")
    operator: Operator
    value: Any = None


class Action(BaseModel):
    type: ActionType
    parameters: dict[str, Any] = Field(default_factory=dict)


class RuleCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    description: str | None = None
    is_active: bool = True
    priority: int = Field(default=1, ge=1, le=10)
    conditions: list[Condition] = Field(default_factory=list)
    actions: list[Action] = Field(default_factory=list)


class RuleUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = None
    is_active: bool | None = None
    priority: int | None = Field(default=None, ge=1, le=10)
    conditions: list[Condition] | None = None
    actions: list[Action] | None = None


class RuleDefinition(BaseModel):
    """Evaluation view of a stored rule."""

    id: int | None = None
    name: str
    priority: int = 1
    conditions: list[Condition] = Field(default_factory=list)
    actions: list[Action] = Field(default_factory=list)


class FiredRule(BaseModel):
    rule_id: int | None
    rule_name: str
    actions: list[ActionType] = []


class TransactionDraft(BaseModel):
    """In-memory working copy of a transaction, mutated by rule actions."""

    transaction_id: str
    user_id: str
    amount: float
    currency: str = "USD"
    timestamp: datetime
    risk_score: int = 0
    requested_status: TransactionStatus | None = None
    forced_status: TransactionStatus | None = None
    description: str | None = None
    merchant_id: str | None = None
    merchant_name: str | None = None
    payment_method: PaymentMethod = PaymentMethod.OTHER
    location: Location | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    flags: list[Flag] = Field(default_factory=list)
    alert_requests: list[dict[str, Any]] = Field(default_factory=list)

    def lookup_view(self) -> dict[str, Any]:
        """Plain-dict view used for dotted field-path lookups.

        Holds both snake_case and camelCase keys so rules written against
        either naming resolve.
        """
        data = self.model_dump(mode="json", exclude={"flags", "alert_requests"})
        status = self.forced_status or self.requested_status or TransactionStatus.SAFE
        data["status"] = status.value
        if self.location is not None:
            data["location"] = self.location.model_dump(mode="json")
            data["location"]["ipAddress"] = self.location.ip_address
        view = dict(data)
        for key, value in data.items():
            camel = to_camel(key)
            if camel != key:
                view.setdefault(camel, value)
        return view


class RuleEvaluation(BaseModel):
    fired_rules: list[FiredRule] = []
    flags_added: int = 0
    score_before: int = 0
    score_after: int = 0
    forced_status: TransactionStatus | None = None
