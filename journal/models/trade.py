from pydantic import BaseModel, Field
from typing import Optional
from datetime import date, datetime
from enum import Enum


class OptionType(str, Enum):
    CALLS = "calls"
    PUTS = "puts"


class TimeClassification(str, Enum):
    CASH_OPEN = "Cash Open"
    EURO_CLOSE = "Euro Close"
    POWER_HOUR = "Power Hour"
    OTHER = "Other"


class TradeCreate(BaseModel):
    ticker: str
    type: OptionType
    quantity: int = Field(gt=0)
    entry_price: float
    exit_price: Optional[float] = None
    entry_time: datetime
    exit_time: Optional[datetime] = None
    strike_price: float
    expiration_date: date
    trade_date: date
    pnl: Optional[float] = None
    entry_reason: Optional[str] = None
    exit_reason: Optional[str] = None
    playbook_id: Optional[int] = None
    time_classification: Optional[TimeClassification] = None


class TradeUpdate(BaseModel):
    ticker: Optional[str] = None
    type: Optional[OptionType] = None
    quantity: Optional[int] = Field(default=None, gt=0)
    entry_price: Optional[float] = None
    exit_price: Optional[float] = None
    entry_time: Optional[datetime] = None
    exit_time: Optional[datetime] = None
    strike_price: Optional[float] = None
    expiration_date: Optional[date] = None
    trade_date: Optional[date] = None
    pnl: Optional[float] = None
    entry_reason: Optional[str] = None
    exit_reason: Optional[str] = None
    playbook_id: Optional[int] = None
    time_classification: Optional[TimeClassification] = None


class Trade(TradeCreate):
    id: int
    time_classification: Optional[str] = None
    created_at: str


class TradeImportRequest(BaseModel):
    content: str
    trade_date: Optional[date] = None
    playbook_id: Optional[int] = 1
    dry_run: bool = False
