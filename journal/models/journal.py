from pydantic import BaseModel
from typing import Optional
import datetime as dt
from enum import Enum


class Bias(str, Enum):
    BULLISH = "bullish"
    BEARISH = "bearish"
    NEUTRAL = "neutral"


class Impact(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class PremarketAnalysisCreate(BaseModel):
    date: dt.date
    climate_notes: Optional[str] = None
    # Economic events
    has_economic_events: bool = False
    economic_events: Optional[str] = None
    economic_impact: Optional[Impact] = None
    # Volatility
    vix_value: Optional[float] = None
    expected_volatility: Optional[int] = None  # 1-100
    gamma_environment: Optional[str] = None    # positive / negative
    bias: Optional[Bias] = None
    # SPY key levels
    call_resistance: Optional[str] = None
    put_support: Optional[str] = None
    hvl_level: Optional[str] = None
    vault_level: Optional[str] = None
    vwap_level: Optional[str] = None
    key_levels: Optional[str] = None
    spy_analysis: Optional[str] = None
    spy_critical_level: Optional[str] = None
    spy_direction: Optional[str] = None        # long / short
    # Trade ideas
    trade_idea_1: Optional[str] = None
    trade_idea_2: Optional[str] = None
    trade_idea_3: Optional[str] = None


class PremarketAnalysisUpdate(PremarketAnalysisCreate):
    date: Optional[dt.date] = None
    has_economic_events: Optional[bool] = None


class TradeAnalysisCreate(BaseModel):
    trade_id: int
    screenshot_url: Optional[str] = None
    what_went_well: Optional[str] = None
    what_to_improve: Optional[str] = None
    next_time: Optional[str] = None


class TradeAnalysisUpdate(BaseModel):
    screenshot_url: Optional[str] = None
    what_went_well: Optional[str] = None
    what_to_improve: Optional[str] = None
    next_time: Optional[str] = None


class PlaybookStrategyCreate(BaseModel):
    name: str
    description: Optional[str] = None
    is_default: bool = False


class PlaybookStrategyUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    is_default: Optional[bool] = None


class IntradayNoteCreate(BaseModel):
    date: dt.date
    time: dt.datetime
    note: str


class IntradayNoteUpdate(BaseModel):
    date: Optional[dt.date] = None
    time: Optional[dt.datetime] = None
    note: Optional[str] = None


class SettingValue(BaseModel):
    value: str = ""
