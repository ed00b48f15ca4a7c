from pydantic import BaseModel
from typing import Dict, List, Optional

class Position(BaseModel):
    x: float
    y: float
    z: Optional[float] = None

class DeltaRecord(BaseModel):
    metric: str
    label: str
    before: float
    after: float
    change: float
    change_percent: Optional[float] = None
    improved: bool
    direction: str
    unit: str
    improvement_percent: Optional[float] = None

class MetricVectors(BaseModel):
    before: Dict[str, float]
    after: Dict[str, float]

class FaceDiagnostics(BaseModel):
    confidence: float
    missing_landmarks: List[str]

class ComparisonResponse(BaseModel):
    success: bool = True
    metrics: MetricVectors
    deltas: Dict[str, DeltaRecord]
    composites: Dict[str, float]
    interpretation: Dict[str, str]
    commentary: str
    face_counts: Dict[str, int]
    pose_change: Dict[str, float]
    expression_changes: Dict[str, str]
    realigned: bool
    diagnostics: Dict[str, FaceDiagnostics]

class LandmarkComparisonRequest(BaseModel):
    before: Dict[str, Position]
    after: Dict[str, Position]

class LandmarkComparisonResponse(BaseModel):
    success: bool = True
    metrics: MetricVectors
    deltas: Dict[str, DeltaRecord]
    composites: Dict[str, float]
    interpretation: Dict[str, str]

class HeadPose(BaseModel):
    roll: float
    pan: float
    tilt: float

class LandmarkResponse(BaseModel):
    success: bool = True
    face_count: int
    confidence: float
    pose: Optional[HeadPose] = None
    landmarks: Dict[str, Position]

class AlignmentResponse(BaseModel):
    success: bool = True
    offset_x: float
    offset_y: float
    rotation_deg: float
    scale: float
    before_center: List[float]
    after_center: List[float]

class ErrorResponse(BaseModel):
    success: bool = False
    reason: str
    message: str
    details: Dict = {}
