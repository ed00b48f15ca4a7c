"""Failure conditions of the comparison pipeline."""


class ComparisonError(Exception):
    """Base class; `reason` is the code reported to API callers."""
    reason = "ComparisonError"

    def __init__(self, message, **details):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self):
        return {"success": False, "reason": self.reason, "message": self.message, "details": self.details}


class NoFaceDetected(ComparisonError):
    """Zero faces in one or both images. `details['face_counts']` holds per-image counts."""
    reason = "NoFaceDetected"

    def __init__(self, face_counts):
        counts = ", ".join(f"{k}: {v}" for k, v in face_counts.items())
        super().__init__(f"No face detected ({counts}).", face_counts=dict(face_counts))
        self.face_counts = dict(face_counts)


class MissingReferenceLandmarks(ComparisonError):
    reason = "MissingReferenceLandmarks"

    def __init__(self, missing, image=None):
        names = [getattr(m, "value", m) for m in missing]
        details = {"missing": names}
        if image:
            details["image"] = image
        super().__init__(f"Required landmarks missing: {', '.join(names)}", **details)
        self.missing = names


class DegenerateReference(ComparisonError):
    reason = "DegenerateReference"

    def __init__(self, distance, image=None):
        details = {"distance": distance}
        if image:
            details["image"] = image
        super().__init__(f"Reference distance {distance!r} is too small to normalize.", **details)


class UndefinedMetric(ComparisonError):
    """Raised by a single metric function; the extractor drops that metric."""
    reason = "UndefinedMetric"


class ExternalServiceError(ComparisonError):
    reason = "ExternalServiceError"

    def __init__(self, service, message):
        super().__init__(f"{service} request failed: {message}", service=service)
        self.service = service
