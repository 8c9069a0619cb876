"""
Pydantic schemas for query filters and stored snapshot payloads.

Filters arrive from forms or saved JSON, so every field name, metric and
operator is checked against a closed vocabulary when the filter is built.
An unknown name raises ``pydantic.ValidationError`` here instead of
silently matching nothing at evaluation time.
"""

from __future__ import annotations

from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


# ---------------------------------------------------------------------------
# Query vocabulary
# ---------------------------------------------------------------------------

class QueryField(str, Enum):
    BET_TYPE = "BET_TYPE"
    BET_SELECTION = "BET_SELECTION"
    COUNTRY = "COUNTRY"
    LEAGUE = "LEAGUE"
    TEAM_INCLUDED = "TEAM_INCLUDED"
    HOME_TEAM = "HOME_TEAM"
    AWAY_TEAM = "AWAY_TEAM"
    RESULT = "RESULT"
    ODDS1 = "ODDS1"
    ODDS2 = "ODDS2"
    ODDSX = "ODDSX"
    HOME_SCORE = "HOME_SCORE"
    AWAY_SCORE = "AWAY_SCORE"
    DATE = "DATE"
    HOME_TEAM_POSITION_NUMBER = "HOME_TEAM_POSITION_NUMBER"
    AWAY_TEAM_POSITION_NUMBER = "AWAY_TEAM_POSITION_NUMBER"
    TOTAL_TEAMS_IN_LEAGUE = "TOTAL_TEAMS_IN_LEAGUE"
    HOME_TEAM_GAMES_PLAYED = "HOME_TEAM_GAMES_PLAYED"
    AWAY_TEAM_GAMES_PLAYED = "AWAY_TEAM_GAMES_PLAYED"


class Metric(str, Enum):
    WINS = "wins"
    LOSSES = "losses"
    WIN_RATE = "winRate"
    TOTAL = "total"


class Operator(str, Enum):
    EQUALS = "equals"
    GREATER_THAN = "greaterThan"
    LESS_THAN = "lessThan"
    CONTAINS = "contains"


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


class QueryFilter(BaseModel):
    """
    One row-level predicate plus an optional team-level predicate.

    ``field``/``value`` match individual bet records.  ``metric``,
    ``operator`` and ``metric_value`` are checked against the matching
    team's aggregate and only apply when all three are set.
    """

    model_config = ConfigDict(frozen=True)

    field: Optional[QueryField] = Field(None, description="Bet record column to match")
    value: str = Field("", description="Text or number to match against the column")
    metric: Optional[Metric] = None
    operator: Optional[Operator] = None
    metric_value: Optional[str] = None

    @field_validator("field", mode="before")
    @classmethod
    def normalize_field(cls, v: Any) -> Any:
        v = _blank_to_none(v)
        return v.strip().upper() if isinstance(v, str) else v

    @field_validator("metric", "operator", mode="before")
    @classmethod
    def blank_is_unset(cls, v: Any) -> Any:
        return _blank_to_none(v)

    @field_validator("value", mode="before")
    @classmethod
    def coerce_value(cls, v: Any) -> str:
        return "" if v is None else str(v)

    @field_validator("metric_value", mode="before")
    @classmethod
    def coerce_metric_value(cls, v: Any) -> Optional[str]:
        if v is None:
            return None
        text = str(v)
        return text if text != "" else None

    @property
    def has_row_predicate(self) -> bool:
        return self.field is not None and self.value.strip() != ""

    @property
    def has_metric_predicate(self) -> bool:
        return self.metric is not None and self.operator is not None and self.metric_value is not None


# ---------------------------------------------------------------------------
# Snapshot payloads
# ---------------------------------------------------------------------------

class ConfidenceComponents(BaseModel):
    team: float = Field(..., ge=0, le=10)
    league: float = Field(..., ge=0, le=10)
    odds: float = Field(..., ge=0, le=10)
    matchup: float = Field(..., ge=0, le=10)
    position: float = Field(..., ge=0, le=10)
    home_away: float = Field(..., ge=0, le=10)


class RecommendationPayload(BaseModel):
    """A single fixture recommendation as stored in a daily snapshot."""

    home_team: str
    away_team: str
    country: str = ""
    league: str = ""
    team_included: str = ""
    bet_type: str = ""
    confidence_score: float = Field(..., ge=1, le=10)
    confidence_label: str
    recommendation: str
    reasons: List[str] = Field(default_factory=list)
    components: ConfidenceComponents
    risk_level: Optional[Literal["Low", "Medium", "High"]] = None
    profit_probability: Optional[float] = Field(None, ge=0.0, le=1.0)


class PredictionSnapshot(BaseModel):
    """Everything the caller persists for one calendar day."""

    snapshot_date: date
    generated_at: datetime
    recommendations: List[RecommendationPayload] = Field(default_factory=list)
    summary: Dict[str, Any] = Field(default_factory=dict)
