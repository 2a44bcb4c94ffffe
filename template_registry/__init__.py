"""
Face Template Registry

In-memory registries that register, identify and authenticate faces from
biometric templates, and coordinate several registries whose templates come
from different recognition algorithms.

Main components:
    - registry: FaceTemplateRegistry for templates of a single version
    - multi_registry: FaceTemplateMultiRegistry across versions
    - matching: recognition capability interface and match engine
    - config: configuration loading and registry thresholds
    - exceptions: typed registry errors

Usage:
    from template_registry import FaceTemplateRegistry, FaceTemplateMultiRegistry
"""

from template_registry.config import (
    RegistryConfiguration,
    get_config,
    get_section,
    get_registry_config,
    get_multi_registry_config,
    get_logging_config,
)

from template_registry.exceptions import (
    FaceTemplateRegistryError,
    RegistryClosedError,
    SimilarFaceAlreadyRegisteredError,
    IdentifierNotRegisteredError,
    IncompatibleFaceTemplatesError,
    FaceDoesNotMatchExistingError,
)

from template_registry.face_template import (
    TemplateVersion,
    FaceTemplate,
    TaggedFaceTemplate,
    Face,
    IdentificationResult,
    AuthenticationResult,
)

from template_registry.matching import (
    FaceRecognition,
    StubFaceRecognition,
    MatchEngine,
)

from template_registry.template_store import TemplateStore
from template_registry.registry import FaceTemplateRegistry
from template_registry.multi_registry import (
    FaceTemplateMultiRegistry,
    MultiRegistryDelegate,
)
from template_registry.logging_config import setup_logging

__all__ = [
    # Configuration
    "RegistryConfiguration",
    "get_config",
    "get_section",
    "get_registry_config",
    "get_multi_registry_config",
    "get_logging_config",
    "setup_logging",
    # Errors
    "FaceTemplateRegistryError",
    "RegistryClosedError",
    "SimilarFaceAlreadyRegisteredError",
    "IdentifierNotRegisteredError",
    "IncompatibleFaceTemplatesError",
    "FaceDoesNotMatchExistingError",
    # Data types
    "TemplateVersion",
    "FaceTemplate",
    "TaggedFaceTemplate",
    "Face",
    "IdentificationResult",
    "AuthenticationResult",
    # Matching
    "FaceRecognition",
    "StubFaceRecognition",
    "MatchEngine",
    # Registries
    "TemplateStore",
    "FaceTemplateRegistry",
    "FaceTemplateMultiRegistry",
    "MultiRegistryDelegate",
]
__version__ = "0.1.0"
