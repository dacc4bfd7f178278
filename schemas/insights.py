from pydantic import BaseModel, Field
from typing import List, Optional, Dict

class ColumnStatistics(BaseModel):
    """Statistics for a single column in the dataset"""
    name: str
    data_type: str
    null_count: int
    unique_count: int
    min: Optional[str] = None
    max: Optional[str] = None
    mean: Optional[str] = None
    median: Optional[str] = None
    std_dev: Optional[str] = None
    percentile_25: Optional[str] = None
    percentile_75: Optional[str] = None
    frequent_values: Optional[Dict[str, int]] = None

class DataSummary(BaseModel):
    row_count: int = 0
    column_count: int = 0
    numeric_columns: List[str] = Field(default_factory=list)
    categorical_columns: List[str] = Field(default_factory=list)
    date_columns: List[str] = Field(default_factory=list)
    summary_text: str = ""

class VisualizationRecommendation(BaseModel):
    chart_type: str = ""
    title: str = ""
    description: str = ""
    columns: List[str] = Field(default_factory=list)

class ActionableRecommendation(BaseModel):
    recommendation: str = ""
    rationale: str = ""

class AISummary(BaseModel):
    """AI-generated summary and recommendations"""
    summary: str = ""
    key_insights: List[str] = Field(default_factory=list)
    actionable_recommendations: List[ActionableRecommendation] = Field(default_factory=list)
    visualization_recommendations: List[VisualizationRecommendation] = Field(default_factory=list)

class Insights(BaseModel):
    data_summary: DataSummary = Field(default_factory=DataSummary)
    column_statistics: List[ColumnStatistics] = Field(default_factory=list)
    correlations: Optional[Dict[str, float]] = None
    ai_analysis: Optional[AISummary] = None

class InsightsResponse(BaseModel):
    """Response model for the insights endpoint"""
    job_id: str
    status: str
    message: Optional[str] = None
    insights: Optional[Insights] = None
