"""
pycoxnet: elastic-net penalized Cox regression for Python.

Fits penalized Cox proportional-hazards models for right-censored and
counting-process (time-varying covariate) data, selects the penalty by
cross-validation, and produces survival and hazard predictions.

Submodules:
    core: Result envelope, exceptions, validation, timing
    survival: Penalized Cox paths, cross-validation, predictions
"""

__version__ = "0.1.0"

from pycoxnet import survival
from pycoxnet.survival import coxnet, coxnet_paths, cv_coxnet, lambda_max

__all__ = [
    "__version__",
    "survival",
    "coxnet",
    "coxnet_paths",
    "cv_coxnet",
    "lambda_max",
]
