import io
import datetime
from PIL import Image, UnidentifiedImageError
from fastapi import FastAPI, File, UploadFile, Depends, HTTPException, Query, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse
from typing import Optional

from .schemas import (
    AlignmentResponse, ComparisonResponse, ErrorResponse, LandmarkComparisonRequest,
    LandmarkComparisonResponse, LandmarkResponse
)
from .dependencies import get_pipeline_factory, get_services
from facecompare import config
from facecompare.alignment import ALIGNMENT_LANDMARKS, compute_alignment
from facecompare.errors import ComparisonError, DegenerateReference, MissingReferenceLandmarks, NoFaceDetected
from facecompare.landmarks import LandmarkSet
from facecompare.processing import compare_landmark_sets
from facecompare.utils.client_utils import Services, services_configured
from facecompare.utils.logging_utils import get_logger, setup_logging

setup_logging()
logger = get_logger("api")

app = FastAPI(
    title="Face Comparison API",
    description="Upload before/after face photos to measure lift, sagging, slimming and skin-tone changes.",
    version="1.0.0"
)

ERROR_STATUS = {
    "NoFaceDetected": 422,
    "MissingReferenceLandmarks": 422,
    "DegenerateReference": 422,
    "ExternalServiceError": 502,
}

ERROR_RESPONSES = {422: {"model": ErrorResponse}, 502: {"model": ErrorResponse}}

@app.exception_handler(ComparisonError)
async def comparison_error_handler(request: Request, exc: ComparisonError):
    """Every pipeline failure becomes a structured JSON body with its reason code."""
    return JSONResponse(status_code=ERROR_STATUS.get(exc.reason, 500), content=exc.to_dict())

async def read_image(file: UploadFile) -> bytes:
    """Read an upload and check it is a decodable image of an accepted type."""
    if file.content_type not in config.ALLOWED_CONTENT_TYPES:
        raise HTTPException(status_code=400, detail=f"Invalid file type for '{file.filename}'. Only JPEG, PNG or WebP are accepted.")

    image_bytes = await file.read()
    if not image_bytes:
        raise HTTPException(status_code=400, detail=f"File '{file.filename}' is empty.")

    try:
        Image.open(io.BytesIO(image_bytes)).verify()
    except (UnidentifiedImageError, OSError, SyntaxError, Image.DecompressionBombError):
        raise HTTPException(status_code=400, detail=f"Could not read '{file.filename}'. The file may be corrupted.")
    return image_bytes

@app.get("/", tags=["Health Check"])
def read_root():
    """Basic endpoint to check the server is up."""
    return {
        "status": "ok",
        "message": "Face Comparison API",
        "timestamp": datetime.datetime.now(datetime.timezone.utc).isoformat(),
        "services": services_configured(),
    }

@app.post("/compare/", response_model=ComparisonResponse, responses=ERROR_RESPONSES, tags=["Comparison"])
async def compare_images(
    before: UploadFile = File(..., description="Photo taken before the treatment."),
    after: UploadFile = File(..., description="Photo taken after the treatment."),
    realign: Optional[bool] = Query(None, description="Realign the before photo onto the after pose before measuring."),
    pipeline_factory = Depends(get_pipeline_factory)
):
    """
    Main comparison endpoint:
    1. Detect landmarks on both photos.
    2. Optionally realign the before photo and detect again.
    3. Measure, score and summarise the changes.
    """
    before_bytes = await read_image(before)
    after_bytes = await read_image(after)
    logger.info(f"Comparing '{before.filename}' with '{after.filename}'")

    pipeline = pipeline_factory(realign=realign)
    result = await pipeline.run(before_bytes, after_bytes)
    return result.to_dict()

@app.post("/face/compare/", response_model=LandmarkComparisonResponse, responses=ERROR_RESPONSES, tags=["Comparison"])
def compare_landmarks(payload: LandmarkComparisonRequest):
    """Sagging/lift diagnosis from two landmark maps. No detector or LLM call."""
    before = LandmarkSet.from_dict({k: v.model_dump() for k, v in payload.before.items()})
    after = LandmarkSet.from_dict({k: v.model_dump() for k, v in payload.after.items()})
    data = compare_landmark_sets(before, after).to_dict()
    return {key: data[key] for key in ("success", "metrics", "deltas", "composites", "interpretation")}

@app.post("/landmarks/", response_model=LandmarkResponse, responses=ERROR_RESPONSES, tags=["Landmarks"])
async def detect_landmarks(
    file: UploadFile = File(..., description="Photo to run landmark detection on."),
    services: Services = Depends(get_services)
):
    """Landmarks, pose and confidence of the first detected face."""
    image_bytes = await read_image(file)
    detection = await run_in_threadpool(services.detector.detect, image_bytes)
    if not detection.faces:
        raise NoFaceDetected({"image": 0})

    face = detection.primary_face
    return {
        "success": True,
        "face_count": detection.face_count,
        "confidence": face.confidence,
        "pose": face.pose._asdict() if face.pose else None,
        "landmarks": face.landmarks.to_dict(),
    }

@app.post("/align/", response_model=AlignmentResponse, responses=ERROR_RESPONSES, tags=["Landmarks"])
async def align_images(
    before: UploadFile = File(..., description="Photo taken before the treatment."),
    after: UploadFile = File(..., description="Photo taken after the treatment."),
    services: Services = Depends(get_services)
):
    """Transform (translation, rotation, scale) mapping the before face onto the after face."""
    before_bytes = await read_image(before)
    after_bytes = await read_image(after)

    before_det = await run_in_threadpool(services.detector.detect, before_bytes)
    after_det = await run_in_threadpool(services.detector.detect, after_bytes)
    if not before_det.faces or not after_det.faces:
        raise NoFaceDetected({"before": before_det.face_count, "after": after_det.face_count})

    before_face, after_face = before_det.primary_face, after_det.primary_face
    transform = compute_alignment(before_face, after_face)
    if transform is None:
        missing = before_face.landmarks.missing(*ALIGNMENT_LANDMARKS)
        missing += [n for n in after_face.landmarks.missing(*ALIGNMENT_LANDMARKS) if n not in missing]
        if missing:
            raise MissingReferenceLandmarks(missing)
        raise DegenerateReference(0.0)
    return {"success": True, **transform.to_dict()}
