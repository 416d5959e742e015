"""
Model artifact loading.

This module is responsible for:
- Locating a serialized model on disk (``settings.MODEL_PATH`` by default).
- Loading it from a **pickle** file.
- Adapting it to the ``PredictiveModel`` contract (see ``.models``) so the
  interpretation services never depend on the model's concrete type.

Artifact formats
----------------
1) A bare fitted model object (anything with ``predict``/``predict_proba``,
   or a callable over a DataFrame).
2) A dict bundle::

       {
           "model": <fitted model>,
           "feature_order": ["age", "income", ...],   # optional
           "use_proba": True,                          # optional
       }

   ``feature_order`` makes the adapter reorder/backfill input columns before
   predicting; ``use_proba`` selects the positive-class probability as the
   model output.
"""

import logging
import pickle
from pathlib import Path
from typing import Union

from ..config import settings
from .models import PredictiveModel, as_model

logger = logging.getLogger(__name__)


def _exists(p: Path) -> bool:
    """Safely check whether a path exists, guarding against OS errors."""
    try:
        return p.exists()
    except OSError:
        return False


def load_model(path: Union[str, Path, None] = None) -> PredictiveModel:
    """Load a pickled model artifact and adapt it.

    Args
    ----
    path:
        Pickle file; defaults to ``settings.MODEL_PATH``.

    Returns
    -------
    PredictiveModel
        The adapted model.

    Raises
    ------
    FileNotFoundError
        If the artifact file is missing.
    """
    p = Path(path or settings.MODEL_PATH)
    if not _exists(p):
        raise FileNotFoundError(f"Model artifact not found: {p}")

    with open(p, "rb") as f:
        artifact = pickle.load(f)

    if isinstance(artifact, dict) and "model" in artifact:
        model = as_model(
            artifact["model"],
            use_proba=bool(artifact.get("use_proba", False)),
            feature_order=artifact.get("feature_order"),
        )
    else:
        model = as_model(artifact)

    logger.info("Loaded model artifact %s (%s)", p, type(model).__name__)
    return model
