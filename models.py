"""
Data model for SearchScope

Immutable value types for search analytics snapshots, stored entities, and
the pydantic schemas that validate insertion payloads and AI responses.
"""

from dataclasses import dataclass, field, asdict
from datetime import date, datetime
from enum import Enum
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

from utils import validate_gsc_property_url


class InsightType(str, Enum):
    POSITIVE = 'positive'
    OPPORTUNITY = 'opportunity'
    INFO = 'info'


@dataclass(frozen=True)
class SearchRow:
    """One Search Analytics row; keys follow the requested dimension order"""

    keys: Tuple[str, ...]
    clicks: int = 0
    impressions: int = 0
    ctr: float = 0.0
    position: float = 0.0

    @classmethod
    def from_api(cls, row: Dict) -> 'SearchRow':
        """
        Build a row from a raw API row, normalising absent fields

        Args:
            row: Row dictionary as returned by searchanalytics.query

        Returns:
            SearchRow with missing numeric fields set to 0
        """
        return cls(
            keys=tuple(str(k) for k in (row.get('keys') or ())),
            clicks=int(row.get('clicks') or 0),
            impressions=int(row.get('impressions') or 0),
            ctr=float(row.get('ctr') or 0),
            position=float(row.get('position') or 0)
        )

    def to_dict(self) -> Dict:
        return {
            'keys': list(self.keys),
            'clicks': self.clicks,
            'impressions': self.impressions,
            'ctr': self.ctr,
            'position': self.position
        }


@dataclass(frozen=True)
class SearchAnalytics:
    """Snapshot of one (site, date range, dimension set) query"""

    rows: Tuple[SearchRow, ...]
    start_date: date
    end_date: date
    dimensions: Tuple[str, ...] = ('query',)
    aggregation_type: Optional[str] = None

    def to_dict(self) -> Dict:
        data = {
            'rows': [row.to_dict() for row in self.rows],
            'startDate': self.start_date.isoformat(),
            'endDate': self.end_date.isoformat(),
            'dimensions': list(self.dimensions)
        }
        if self.aggregation_type:
            data['responseAggregationType'] = self.aggregation_type
        return data


@dataclass(frozen=True)
class AggregatedSummary:
    """Totals and weighted averages derived from a set of rows"""

    total_clicks: int = 0
    total_impressions: int = 0
    avg_ctr: float = 0.0
    avg_position: float = 0.0

    def to_dict(self) -> Dict:
        return {
            'totalClicks': self.total_clicks,
            'totalImpressions': self.total_impressions,
            'avgCtr': self.avg_ctr,
            'avgPosition': self.avg_position
        }


@dataclass
class User:
    id: int
    username: str
    email: Optional[str] = None
    google_id: Optional[str] = None
    google_access_token: Optional[str] = None
    google_refresh_token: Optional[str] = None
    created_at: datetime = field(default_factory=datetime.now)


@dataclass
class Website:
    id: int
    user_id: int
    url: str
    site_url: str
    permission_level: Optional[str] = None
    created_at: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict:
        data = asdict(self)
        data['created_at'] = self.created_at.isoformat()
        return data


@dataclass
class Insight:
    id: int
    website_id: int
    type: InsightType
    title: str
    description: str
    created_at: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict:
        return {
            'id': self.id,
            'websiteId': self.website_id,
            'type': self.type.value,
            'title': self.title,
            'description': self.description,
            'createdAt': self.created_at.isoformat()
        }


@dataclass
class SearchDataSnapshot:
    """A fetched SearchAnalytics snapshot cached against a website"""

    id: int
    website_id: int
    data: SearchAnalytics
    start_date: date
    end_date: date
    created_at: datetime = field(default_factory=datetime.now)


# ---------------------------------------------------------------------------
# Insertion schemas
# ---------------------------------------------------------------------------

class InsightCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    website_id: int = Field(alias='websiteId', gt=0)
    type: InsightType
    title: str = Field(min_length=1)
    description: str = Field(min_length=1)


class WebsiteCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    user_id: int = Field(alias='userId', gt=0)
    url: str = Field(min_length=1)
    site_url: str = Field(alias='siteUrl', min_length=1)
    permission_level: Optional[str] = Field(default=None, alias='permissionLevel')

    @field_validator('site_url')
    @classmethod
    def check_property_url(cls, value: str) -> str:
        if not validate_gsc_property_url(value):
            raise ValueError("must be a URL-prefix (http/https) or sc-domain: property")
        return value


# ---------------------------------------------------------------------------
# AI response schema
# ---------------------------------------------------------------------------

class InsightDraft(BaseModel):
    type: InsightType
    title: str
    description: str


class Performer(BaseModel):
    name: str
    reason: str = ''


class TopPerformers(BaseModel):
    queries: List[Performer] = Field(default_factory=list)
    pages: List[Performer] = Field(default_factory=list)


class AnalysisResult(BaseModel):
    """Shape the model is instructed to emit for a full analysis"""

    model_config = ConfigDict(populate_by_name=True)

    summary: str
    insights: List[InsightDraft]
    top_performers: TopPerformers = Field(alias='topPerformers')
    recommendations: List[str]
