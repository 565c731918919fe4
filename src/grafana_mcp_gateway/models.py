"""
Data models for Grafana MCP Gateway.

Prometheus responses are parsed into tagged result variants keyed on
``resultType`` so the formatter can handle each shape explicitly.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

Sample = tuple[float, str]


# ==========================================================================
# Grafana
# ==========================================================================


class Datasource(BaseModel):
    """A configured Grafana datasource (subset of the API fields)."""

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    id: int
    uid: str = ""
    name: str = ""
    type: str = ""
    is_default: bool = Field(default=False, alias="isDefault")
    url: str = ""


# ==========================================================================
# Queries
# ==========================================================================


class QueryRequest(BaseModel):
    """A PromQL request; a range query iff both start and end are set."""

    model_config = ConfigDict(extra="ignore")

    query: str = Field(min_length=1, description="PromQL query to execute")
    time: Optional[str] = Field(
        default=None, description="Evaluation time for an instant query (ISO-8601, epoch or now-5m)"
    )
    start: Optional[str] = Field(
        default=None, description="Start time for a range query (ISO-8601, epoch or now-1h)"
    )
    end: Optional[str] = Field(
        default=None, description="End time for a range query (ISO-8601, epoch or now)"
    )
    step: Optional[str] = Field(
        default=None, description="Resolution step for a range query (e.g. '1m', '5m', '60')"
    )

    @field_validator("time", "start", "end", "step", mode="before")
    @classmethod
    def coerce_time_value(cls, v: Any) -> Any:
        """Accept numeric epochs and step seconds; blank strings count as unset."""
        if isinstance(v, bool):
            return v
        if isinstance(v, (int, float)):
            return str(v)
        if isinstance(v, str):
            return v.strip() or None
        return v

    @property
    def is_range(self) -> bool:
        return bool(self.start) and bool(self.end)


class VectorSeries(BaseModel):
    metric: dict[str, str] = Field(default_factory=dict)
    value: Sample


class MatrixSeries(BaseModel):
    metric: dict[str, str] = Field(default_factory=dict)
    values: list[Sample] = Field(default_factory=list)


class VectorData(BaseModel):
    result_type: Literal["vector"] = Field(alias="resultType")
    result: list[VectorSeries] = Field(default_factory=list)


class MatrixData(BaseModel):
    result_type: Literal["matrix"] = Field(alias="resultType")
    result: list[MatrixSeries] = Field(default_factory=list)


class ScalarData(BaseModel):
    result_type: Literal["scalar"] = Field(alias="resultType")
    result: Sample


class StringData(BaseModel):
    result_type: Literal["string"] = Field(alias="resultType")
    result: Sample


ResultData = Annotated[
    Union[VectorData, MatrixData, ScalarData, StringData],
    Field(discriminator="result_type"),
]


class QueryResult(BaseModel):
    """Typed Prometheus API envelope."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    status: Literal["success", "error"]
    data: Optional[ResultData] = None
    error_type: Optional[str] = Field(default=None, alias="errorType")
    error: Optional[str] = None
    warnings: list[str] = Field(default_factory=list)

    @property
    def result_type(self) -> Optional[str]:
        return self.data.result_type if self.data is not None else None


# ==========================================================================
# Tool arguments
# ==========================================================================


class QueryPrometheusArgs(QueryRequest):
    description: Optional[str] = Field(
        default=None,
        description="Free-text hint used to phrase the summary (e.g. 'memory usage')",
    )


class GetDashboardArgs(BaseModel):
    model_config = ConfigDict(extra="ignore")

    identifier: str = Field(
        min_length=1,
        validation_alias=AliasChoices("identifier", "uid", "dashboardUid"),
        description="Dashboard UID, or numeric ID when type is 'id'",
    )
    type: Literal["id", "uid"] = Field(
        default="uid", description="Whether identifier is an ID or a UID"
    )

    @model_validator(mode="after")
    def check_numeric_id(self) -> "GetDashboardArgs":
        if self.type == "id" and not self.identifier.isdigit():
            raise ValueError("identifier must be numeric when type is 'id'")
        return self


class ListDashboardsArgs(BaseModel):
    model_config = ConfigDict(extra="ignore")

    query: Optional[str] = Field(default=None, description="Search text for dashboard titles")
    limit: int = Field(default=10, ge=1, le=5000, description="Maximum number of dashboards")


class GetPanelDataArgs(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    dashboard_uid: str = Field(min_length=1, alias="dashboardUid", description="Dashboard UID")
    panel_id: int = Field(alias="panelId", description="Panel ID inside the dashboard")
    from_: str = Field(default="now-1h", alias="from", description="Range start")
    to: str = Field(default="now", description="Range end")


class NoArgs(BaseModel):
    model_config = ConfigDict(extra="ignore")


class CreateSnapshotArgs(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    dashboard_uid: str = Field(min_length=1, alias="dashboardUid", description="Dashboard UID")
    expires: int = Field(default=3600, ge=0, description="Snapshot lifetime in seconds (0 = never)")


def dump_model(model: BaseModel) -> dict[str, Any]:
    """Serialize a model with its wire aliases."""
    return model.model_dump(by_alias=True, exclude_none=True)
