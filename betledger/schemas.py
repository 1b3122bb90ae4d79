"""
Request models validated at the boundary, before anything reaches the engine.

Operation creation is a tagged union keyed by ``type``; each variant carries
its own leg rules.
"""
from datetime import date, datetime
from decimal import Decimal
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator, model_validator

from betledger.ledger.events import utc_day
from betledger.models import BetStatus, OperationType

Odds = Annotated[Decimal, Field(gt=1, description="Decimal odds, strictly above 1.0")]

SettledStatus = Literal["WON", "LOST", "VOID", "CASHED_OUT"]


def _blank_to_none(value):
    if value is None:
        return None
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return value


def _parse_event_date(value):
    if isinstance(value, datetime):
        return utc_day(value)
    if isinstance(value, str):
        try:
            return utc_day(datetime.fromisoformat(value.strip().replace("Z", "+00:00")))
        except ValueError:
            raise ValueError("Event date is invalid.")
    return value


class RequestModel(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore")


class LegBase(RequestModel):
    """Fields shared by every leg: what was picked, where, and from which bankroll."""
    match_name: str = Field(min_length=2)
    selection: str = Field(min_length=2)
    event_date: date
    sport: Optional[str] = None
    league: Optional[str] = None
    bankroll_id: str = Field(min_length=1)

    @field_validator("sport", "league", mode="before")
    @classmethod
    def blank_optional_text(cls, v):
        return _blank_to_none(v)

    @field_validator("event_date", mode="before")
    @classmethod
    def parse_event_date(cls, v):
        return _parse_event_date(v)


class StakedLeg(LegBase):
    odds: Odds
    stake: Decimal = Field(gt=0)


class MatchedLeg(LegBase):
    odds: Optional[Odds] = None
    stake: Decimal = Field(ge=0)

    @field_validator("odds", mode="before")
    @classmethod
    def blank_odds(cls, v):
        return _blank_to_none(v)


class OperationBase(RequestModel):
    description: Optional[str] = None
    matched_odds: Optional[Odds] = None

    @field_validator("description", "matched_odds", mode="before")
    @classmethod
    def blank_operation_fields(cls, v):
        return _blank_to_none(v)

    @property
    def operation_type(self) -> OperationType:
        return OperationType(self.type)


class SimpleOperation(OperationBase):
    type: Literal["SIMPLE"]
    legs: List[StakedLeg] = Field(min_length=1, max_length=1)


class ArbitrageOperation(OperationBase):
    type: Literal["ARBITRAGE"]
    legs: List[StakedLeg] = Field(min_length=2)


class MatchedOperation(OperationBase):
    type: Literal["MATCHED"]
    legs: List[MatchedLeg] = Field(min_length=1)

    @model_validator(mode="after")
    def check_stakes_and_odds(self):
        if not any(leg.stake > 0 for leg in self.legs):
            raise ValueError("Provide a stake for at least one leg.")
        if self.matched_odds is None and any(leg.odds is None for leg in self.legs):
            raise ValueError("Odds are required unless using multiple odds.")
        return self


OperationCreate = Annotated[
    Union[SimpleOperation, ArbitrageOperation, MatchedOperation],
    Field(discriminator="type"),
]

_operation_adapter = TypeAdapter(OperationCreate)


def parse_operation(payload) -> Union[SimpleOperation, ArbitrageOperation, MatchedOperation]:
    """Validate a raw creation payload into its typed variant."""
    return _operation_adapter.validate_python(payload)


class EditLeg(LegBase):
    id: str = Field(min_length=1)
    odds: Odds
    stake: Decimal = Field(ge=0)


class OperationEdit(RequestModel):
    operation_id: str = Field(min_length=1)
    description: Optional[str] = None
    legs: List[EditLeg]

    @field_validator("description", mode="before")
    @classmethod
    def blank_description(cls, v):
        return _blank_to_none(v)


class SettleRequest(RequestModel):
    operation_id: str = Field(min_length=1)
    status: SettledStatus
    actual_return: Optional[Decimal] = None
    winning_leg_id: Optional[str] = None

    @field_validator("actual_return", "winning_leg_id", mode="before")
    @classmethod
    def blank_optionals(cls, v):
        return _blank_to_none(v)

    @property
    def bet_status(self) -> BetStatus:
        return BetStatus(self.status)


class LegStatusUpdate(RequestModel):
    bet_id: str = Field(min_length=1)
    status: SettledStatus
    result_value: Optional[Decimal] = None

    @field_validator("result_value", mode="before")
    @classmethod
    def blank_result(cls, v):
        return _blank_to_none(v)

    @property
    def bet_status(self) -> BetStatus:
        return BetStatus(self.status)


class DescriptionUpdate(RequestModel):
    operation_id: str = Field(min_length=1)
    description: Optional[str] = None

    @field_validator("description", mode="before")
    @classmethod
    def blank_description(cls, v):
        return _blank_to_none(v)


class BankrollCreate(RequestModel):
    bookmaker_name: str = Field(min_length=2)
    currency: str = Field(min_length=2, max_length=10)
    initial_balance: Decimal = Field(ge=0)

    @field_validator("currency")
    @classmethod
    def upper_currency(cls, v: str) -> str:
        return v.upper()
