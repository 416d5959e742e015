"""
Model Interpretation API.

This module exposes a FastAPI application that explains a serialized,
already fitted predictive model. The model is loaded lazily from
``settings.MODEL_PATH`` (see ``services.artifacts.load_model``) and only its
``predict`` capability is ever used.

Endpoints
---------
- GET  `/`                     : Liveness/health check.
- GET  `/version`              : App version.
- GET  `/model-info`           : Adapter type and expected feature order.
- POST `/explain/permutation`  : Permutation feature importance (global).
- POST `/explain/pdp`          : Partial dependence (1 or 2 features) and ICE.
- POST `/explain/interaction`  : Friedman H-statistic interaction strength.

Notes
-----
- Input validation is handled by the Pydantic models in ``.schemas``.
- No analysis logic lives in the API layer; it delegates to the service
  layer and only converts results to JSON-safe payloads.
- ``InterpretationError`` (a ``ValueError``) maps to HTTP 400, a missing
  model artifact to 503.
"""

import logging
import math
from functools import lru_cache
from typing import Any, List, Optional

import numpy as np
import pandas as pd
from fastapi import Depends, FastAPI, HTTPException

from .config import settings
from .schemas import (
    ImportanceItem,
    InteractionItem,
    InteractionRequest,
    InteractionResponse,
    PDPRequest,
    PDPResponse,
    PermutationRequest,
    PermutationResponse,
    Row,
)
from .services.artifacts import load_model
from .services.dependence import partial_dependence
from .services.importance import permutation_importance
from .services.interaction import interaction_strength
from .services.models import ColumnAlignedModel, PredictiveModel

logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.PROJECT_VERSION,
    description="Model-agnostic permutation importance, partial dependence/ICE and interaction strength",
)


@lru_cache(maxsize=1)
def _cached_model() -> PredictiveModel:
    return load_model(settings.MODEL_PATH)


def get_model() -> PredictiveModel:
    """FastAPI dependency returning the loaded model (503 if unavailable)."""
    try:
        return _cached_model()
    except FileNotFoundError as e:
        raise HTTPException(status_code=503, detail=str(e))


def _frame(rows: List[Row]) -> pd.DataFrame:
    if not rows:
        raise HTTPException(status_code=400, detail="Empty 'data'.")
    return pd.DataFrame(rows)


def _finite(v: Any) -> Optional[float]:
    """JSON has no inf/nan: report them as null."""
    if v is None:
        return None
    v = float(v)
    return v if math.isfinite(v) else None


def _run(label: str, fn, *args, **kwargs):
    try:
        return fn(*args, **kwargs)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=f"Error in {label}: {e}")
    except Exception:
        logger.exception("Unexpected failure in %s", label)
        raise HTTPException(status_code=500, detail=f"An internal error occurred in {label}.")


# -----------
# Endpoints
# -----------

@app.get("/")
async def health_check():
    """Liveness probe."""
    return {"version": settings.PROJECT_VERSION, "status": "OK"}


@app.get("/version")
async def version():
    return {"app_version": settings.PROJECT_VERSION}


@app.get("/model-info")
def model_info(model: PredictiveModel = Depends(get_model)):
    """Expose the adapter type and, when known, the fitted feature order."""
    order = model.feature_order if isinstance(model, ColumnAlignedModel) else None
    return {"model_type": type(model).__name__, "feature_order": order}


@app.post("/explain/permutation", response_model=PermutationResponse)
def explain_permutation(payload: PermutationRequest, model: PredictiveModel = Depends(get_model)):
    """Compute permutation feature importance over labeled rows.

    Returns
    -------
    PermutationResponse
        Baseline loss, every feature's score (descending) and an optional
        top-K summary.
    """
    df = _frame(payload.data)
    res = _run(
        "permutation importance",
        permutation_importance,
        model,
        df,
        np.asarray(payload.target),
        loss=payload.loss,
        n_repeats=payload.n_repeats,
        mode=payload.mode,
        features=payload.features,
        sample_fraction=payload.sample_fraction,
        random_seed=payload.random_seed,
        max_batch_rows=settings.MAX_BATCH_ROWS,
    )

    items = [
        ImportanceItem(
            feature=s.feature,
            importance=_finite(s.importance),
            mean_loss=s.mean_loss,
            loss_variance=s.loss_variance,
            losses=s.losses,
        )
        for s in res.scores
    ]
    return PermutationResponse(
        baseline_loss=res.baseline_loss,
        loss=res.loss,
        mode=res.mode,
        n_repeats=res.n_repeats,
        n_rows=res.n_rows,
        sample_fraction=res.sample_fraction,
        complete=res.complete,
        scores=items,
        rows=res.rows,
        top=items[: payload.top_k] if payload.top_k else None,
    )


@app.post("/explain/pdp", response_model=PDPResponse)
def explain_pdp(payload: PDPRequest, model: PredictiveModel = Depends(get_model)):
    """Compute Partial Dependence (and optional ICE) for one or two features."""
    df = _frame(payload.data)
    res = _run(
        "PDP/ICE",
        partial_dependence,
        model,
        df,
        payload.features,
        grid_resolution=payload.grid_resolution,
        grid=payload.grid,
        discrete=payload.discrete,
        ice=payload.ice,
        centered=payload.centered,
        ice_sample=payload.ice_sample,
        seed=payload.seed,
        max_batch_rows=settings.MAX_BATCH_ROWS,
    )
    out = res.to_dict()
    return PDPResponse(**out)


@app.post("/explain/interaction", response_model=InteractionResponse)
def explain_interaction(payload: InteractionRequest, model: PredictiveModel = Depends(get_model)):
    """Rank H-statistic interaction strengths (one-vs-all or pairwise)."""
    df = _frame(payload.data)
    res = _run(
        "interaction strength",
        interaction_strength,
        model,
        df,
        feature=payload.feature,
        features=payload.features,
        sample_size=payload.sample_size,
        seed=payload.seed,
        max_batch_rows=settings.MAX_BATCH_ROWS,
    )
    return InteractionResponse(
        mode=res.mode,
        target=res.target,
        n_rows=res.n_rows,
        complete=res.complete,
        scores=[
            InteractionItem(features=s.features, h_squared=s.h_squared, h=s.h, reason=s.reason)
            for s in res.scores
        ],
    )
