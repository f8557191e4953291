"""Data models for the transaction ledger and statistics responses.

Transactions mirror the MongoDB document shape (camelCase aliases, string
ids). Response models describe what the HTTP API returns.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from bson import Decimal128
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from src.cache.keys import format_rfc3339, parse_timestamp


class TransactionType(str, Enum):
    """Kind of ledger transaction."""

    WAGER = "Wager"
    PAYOUT = "Payout"


class Currency(str, Enum):
    """Supported currencies."""

    ETH = "ETH"
    BTC = "BTC"
    USDT = "USDT"


class Transaction(BaseModel):
    """A single wager or payout in the ledger.

    Attributes:
        id: Unique transaction identifier.
        created_at: When the transaction happened.
        user_id: Identifier of the user who placed the wager.
        round_id: Game round the transaction belongs to.
        type: Wager or Payout.
        amount: Amount in the transaction currency, never negative.
        currency: Transaction currency.
        usd_amount: USD value of amount at the time of the transaction.
    """

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., alias="_id")
    created_at: datetime = Field(..., alias="createdAt")
    user_id: str = Field(..., alias="userId")
    round_id: str = Field(..., alias="roundId")
    type: TransactionType
    amount: Decimal = Field(..., ge=0)
    currency: Currency
    usd_amount: Decimal = Field(..., alias="usdAmount", ge=0)

    @field_validator("created_at")
    @classmethod
    def _normalize_created_at(cls, value: datetime) -> datetime:
        return parse_timestamp(value)

    def to_document(self) -> dict[str, Any]:
        """Convert to a MongoDB document with Decimal128 amounts."""
        return {
            "_id": self.id,
            "createdAt": self.created_at,
            "userId": self.user_id,
            "roundId": self.round_id,
            "type": self.type.value,
            "amount": Decimal128(self.amount),
            "currency": self.currency.value,
            "usdAmount": Decimal128(self.usd_amount),
        }


class Timeframe(BaseModel):
    """Inclusive time range for a statistics query."""

    model_config = ConfigDict(populate_by_name=True)

    from_: datetime = Field(..., alias="from")
    to: datetime

    @field_validator("from_", "to")
    @classmethod
    def _to_utc(cls, value: datetime) -> datetime:
        return parse_timestamp(value)

    @model_validator(mode="after")
    def _check_order(self) -> "Timeframe":
        if self.to < self.from_:
            raise ValueError("'to' must be greater than or equal to 'from'")
        return self

    def to_output(self) -> "TimeframeOut":
        """Render the range in canonical RFC3339 form for responses."""
        return TimeframeOut(from_=format_rfc3339(self.from_), to=format_rfc3339(self.to))


class TimeframeOut(BaseModel):
    """Time range echoed back in responses."""

    model_config = ConfigDict(populate_by_name=True)

    from_: str = Field(..., alias="from")
    to: str


class GGRResponse(BaseModel):
    """Gross gaming revenue per currency."""

    timeframe: TimeframeOut
    data: list[dict[str, Any]] = Field(
        default_factory=list,
        description="Rows of {currency, ggr, ggrUSD}",
    )


class DailyWagerVolumeResponse(BaseModel):
    """Wagered amount per day and currency."""

    timeframe: TimeframeOut
    data: list[dict[str, Any]] = Field(
        default_factory=list,
        description="Rows of {date, currency, wagerAmount, wagerUSDAmount} sorted by date then currency",
    )


class WagerPercentileResponse(BaseModel):
    """A user's wager percentile among all wagering users."""

    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(..., alias="userID")
    percentile: float = Field(..., ge=0, le=100)
    timeframe: TimeframeOut


class ErrorResponse(BaseModel):
    """Error response model."""

    error: str = Field(..., description="Error message")
    detail: str | None = Field(default=None, description="Detailed error information")
