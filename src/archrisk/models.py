"""
Core data models for archrisk

Defines the architecture input record and the analysis report using Pydantic
for validation and serialization. JSON on the wire uses camelCase keys.
"""

from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

REQUIRED_INPUT_FIELDS = ("systemName", "components")


class ArchriskError(Exception):
    """Base class for archrisk errors"""


class MissingFieldsError(ArchriskError, ValueError):
    """Raised when required input fields are absent"""

    def __init__(self, fields: list[str]):
        self.fields = fields
        super().__init__("Missing required fields: systemName or components")


class ReportParseError(ArchriskError, ValueError):
    """Raised when LLM output cannot be turned into an AnalysisReport"""


class CamelModel(BaseModel):
    """Base model serializing to camelCase keys"""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        # LLM replies may carry "87" or 87 for the same field
        coerce_numbers_to_str=True,
    )


class ArchitectureInput(CamelModel):
    """Free-text description of the system under analysis"""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        frozen=True,
    )

    system_name: str = ""
    components: str = ""
    databases: str = ""
    caching: str = ""
    message_queue: str = ""
    external_apis: str = Field(default="", alias="externalAPIs")
    traffic_load: str = ""
    scaling: str = ""
    redundancy: str = ""

    @field_validator("*", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> str:
        if value is None:
            return ""
        if isinstance(value, (str, int, float, bool)):
            return str(value)
        raise ValueError("expected a text value")

    def missing_required_fields(self) -> list[str]:
        """Return wire names of required fields that are empty"""
        values = {"systemName": self.system_name, "components": self.components}
        return [name for name in REQUIRED_INPUT_FIELDS if not values[name]]


class FailureScenario(CamelModel):
    """A ranked failure scenario"""

    rank: int
    title: str
    first_failure: str = ""
    impact: str = ""
    probability: str = ""  # "~NN%"
    severity: str = "High"  # Critical | High
    mttr: str = ""  # "LO-HI" minutes
    affected_users: str = ""
    reasons: list[str] = Field(default_factory=list)
    fixes: list[str] = Field(default_factory=list)


class ComponentHealth(CamelModel):
    """Health score for a single component"""

    name: str
    score: float = Field(ge=0.0, le=10.0)
    status: str  # critical | warning | good | missing
    issues: int = 0
    dependencies: int = 0


class Recommendation(CamelModel):
    """A prioritized remediation recommendation"""

    priority: int
    action: str
    impact: str = "Medium"  # High | Medium
    effort: str = "Medium"  # High | Medium | Low
    timeframe: str = ""
    cost_saving: str = ""


class TrafficPoint(CamelModel):
    time: str
    normal: Union[int, float]
    spike: Union[int, float]


class FailureInfo(CamelModel):
    failure_point: str = ""
    failure_component: str = ""


class IncidentPoint(CamelModel):
    month: str
    incidents: int
    severity: float


class RiskCategory(CamelModel):
    category: str
    percentage: Union[int, float]
    color: str = ""


class ReportMetrics(CamelModel):
    """Summary metrics shown on the dashboard header"""

    total_scenarios: int = 0
    total_spof: int = Field(default=0, alias="totalSPOF")
    avg_mttr: Union[int, float] = Field(default=0, alias="avgMTTR")
    projected_downtime: Union[int, float] = 0
    total_savings: str = ""


class ReportMetadata(CamelModel):
    """Provenance attached to every outbound report"""

    generated_by: str
    timestamp: str
    analysis_id: str
    confidence_level: str
    system_name: str


class AnalysisReport(CamelModel):
    """Complete risk analysis for one architecture description"""

    metadata: Optional[ReportMetadata] = None
    risk_score: float = Field(ge=0.0, le=10.0)
    scenarios: list[FailureScenario] = Field(default_factory=list)
    components: list[ComponentHealth] = Field(default_factory=list)
    recommendations: list[Recommendation] = Field(default_factory=list)
    traffic_simulation: list[TrafficPoint] = Field(default_factory=list)
    spike_label: str = ""
    failure_info: FailureInfo = Field(default_factory=FailureInfo)
    historical_incidents: list[IncidentPoint] = Field(default_factory=list)
    incident_trend: str = ""
    risk_distribution: list[RiskCategory] = Field(default_factory=list)
    metrics: ReportMetrics = Field(default_factory=ReportMetrics)
    ai_reasoning: list[str] = Field(default_factory=list)
    assumptions: list[str] = Field(default_factory=list)

    def to_wire(self) -> dict[str, Any]:
        """Serialize with camelCase keys, omitting unset metadata"""
        return self.model_dump(by_alias=True, exclude_none=True)
