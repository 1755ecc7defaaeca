"""dochub-validator - Batch validation for architecture-as-code manifests.

dochub-validator loads a DocHub-style manifest workspace, resolves imports across
files, runs built-in and manifest-declared rules against the merged manifest and
reports the problems it found.
"""

__version__ = "0.2.0"
__author__ = "dochub-validator contributors"
__description__ = "Validate DocHub architecture manifests"

from dochub_validator.config import ValidatorConfig
from dochub_validator.pipeline import validate_manifest, validate_manifest_async

__all__ = [
    "__version__",
    "__author__",
    "__description__",
    "ValidatorConfig",
    "validate_manifest",
    "validate_manifest_async",
]
