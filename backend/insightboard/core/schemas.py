from datetime import datetime
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

# A single cell: Null, Boolean, Number or Text
CellValue = Union[None, bool, int, float, str]
Record = Dict[str, CellValue]

ColumnType = Literal["number", "string", "boolean", "date"]
ChartKind = Literal["bar", "line", "pie", "scatter", "area"]
FileType = Literal["csv", "xlsx", "json"]


class CamelModel(BaseModel):
    """Serializes with camelCase keys for the frontend, accepts both spellings."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class TabularData(CamelModel):
    columns: List[str]
    rows: List[Record]
    column_types: Dict[str, ColumnType]

    @model_validator(mode="after")
    def _types_cover_columns(self) -> "TabularData":
        if set(self.column_types) != set(self.columns):
            raise ValueError("column_types keys must match columns exactly")
        return self

    @property
    def row_count(self) -> int:
        return len(self.rows)

    @property
    def column_count(self) -> int:
        return len(self.columns)


class ChartSpec(CamelModel):
    id: str
    kind: ChartKind = Field(alias="type")
    title: str
    x_axis: Optional[str] = None
    y_axis: Optional[str] = None
    data_key: Optional[str] = None
    data: List[Dict[str, Any]]
    colors: Optional[List[str]] = None


class FileMetadata(CamelModel):
    id: str = ""  # assigned by the analysis store
    filename: str
    file_type: FileType
    uploaded_at: datetime
    row_count: int
    column_count: int


class DataQuality(CamelModel):
    completeness: float = Field(ge=0, le=100)
    accuracy: str


class AIInsights(CamelModel):
    summary: str
    key_insights: List[str]
    recommendations: List[str]
    data_quality: DataQuality
    trends: List[str]


class AnalysisResult(CamelModel):
    file: FileMetadata
    parsed_data: TabularData
    visualizations: List[ChartSpec]
    ai_insights: AIInsights


class UploadResponse(CamelModel):
    id: str


class ChatRequest(CamelModel):
    question: str = ""


class ChatResponse(CamelModel):
    answer: str
