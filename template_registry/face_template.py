"""
Face Template Module

Data classes shared by the registries:

- TemplateVersion: identifies the recognition algorithm that produced a template
- FaceTemplate: opaque template data tagged with its version
- TaggedFaceTemplate: a template paired with the identifier it is enrolled under
- Face: a detected face handed through to the recognition capability
- IdentificationResult / AuthenticationResult: outcomes of registry queries

Templates of different versions are never comparable. The registries only
pass template data to the recognition capability that produced it.

Usage:
    from template_registry.face_template import FaceTemplate, TemplateVersion

    version = TemplateVersion(id=1, name="arcface-r100")
    template = FaceTemplate(version=version, data=embedding)
"""

from dataclasses import dataclass, field
from typing import Any, List, Optional, Tuple

import numpy as np


@dataclass(frozen=True)
class TemplateVersion:
    """
    Version of the recognition algorithm that produced a face template.

    Attributes:
        id: Numeric version identifier (unique per algorithm).
        name: Human-readable algorithm name.
    """

    id: int
    name: str = ""

    def __str__(self) -> str:
        return self.name or f"v{self.id}"


@dataclass(eq=False)
class FaceTemplate:
    """
    Face template produced by a recognition capability.

    The registry treats ``data`` as opaque. Array data is converted to
    float32 so templates produced from different dtypes compare equal.

    Attributes:
        version: Version of the algorithm that produced the template.
        data: Template payload (typically a feature vector).
    """

    version: TemplateVersion
    data: Any

    def __post_init__(self):
        if isinstance(self.data, np.ndarray) and self.data.dtype != np.float32:
            self.data = self.data.astype(np.float32)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, FaceTemplate):
            return NotImplemented
        if self.version != other.version:
            return False
        if isinstance(self.data, np.ndarray) or isinstance(other.data, np.ndarray):
            return bool(np.array_equal(self.data, other.data))
        return self.data == other.data

    def __hash__(self) -> int:
        if isinstance(self.data, np.ndarray):
            return hash((self.version, self.data.tobytes()))
        return hash((self.version, self.data))


@dataclass(frozen=True)
class TaggedFaceTemplate:
    """
    Face template tagged with the identifier of the enrolled user.

    Identifiers are not unique: one user may own several templates.
    """

    face_template: FaceTemplate
    identifier: str

    @property
    def version(self) -> TemplateVersion:
        """Return the version of the wrapped template."""
        return self.face_template.version


@dataclass
class Face:
    """
    Detected face passed to the recognition capability.

    Attributes:
        bbox: Bounding box (x1, y1, x2, y2) in pixels.
        confidence: Detection confidence score (0.0 to 1.0).
        head_pose: Head rotation angles in degrees: (yaw, pitch, roll).
        landmarks: Optional facial landmarks, shape (N, 2).
    """

    bbox: Tuple[float, float, float, float]
    confidence: float = 1.0
    head_pose: Tuple[float, float, float] = (0.0, 0.0, 0.0)
    landmarks: Optional[np.ndarray] = None


@dataclass
class IdentificationResult:
    """
    Result of a face identification.

    Attributes:
        tagged_face_template: Registered template that matched best for its identifier.
        score: Comparison score between that template and the challenge template.
        auto_enrolled_face_templates: Templates added to other registries as a
                                      side effect of this identification.
    """

    tagged_face_template: TaggedFaceTemplate
    score: float
    auto_enrolled_face_templates: List[FaceTemplate] = field(default_factory=list)

    @property
    def identifier(self) -> str:
        """Return the identifier of the matched template."""
        return self.tagged_face_template.identifier


@dataclass
class AuthenticationResult:
    """
    Result of a face authentication.

    Attributes:
        authenticated: True if the score reached the authentication threshold.
        challenge_face_template: Template extracted from the supplied face.
        matched_face_template: Registered template with the highest score.
        score: Highest comparison score.
        auto_enrolled_face_templates: Templates added to other registries as a
                                      side effect of this authentication.
    """

    authenticated: bool
    challenge_face_template: FaceTemplate
    matched_face_template: FaceTemplate
    score: float
    auto_enrolled_face_templates: List[FaceTemplate] = field(default_factory=list)
