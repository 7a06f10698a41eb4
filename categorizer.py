from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Optional
from urllib.request import Request, urlopen

from rapidfuzz.distance import Levenshtein

from config import get_settings


logger = logging.getLogger(__name__)

EXPENSE_CATEGORIES = (
    "Food & Dining",
    "Transportation",
    "Shopping",
    "Entertainment",
    "Bills & Utilities",
    "Healthcare",
    "Education",
    "Travel",
    "Personal Care",
    "Other",
)
FALLBACK_CATEGORY = "Other"
AUTO_FILL_CONFIDENCE = 0.7
MIN_DESCRIPTION_LENGTH = 3
MAX_ALTERNATIVES = 3

HF_INFERENCE_URL = "https://api-inference.huggingface.co/models/{model}"


class ExternalServiceError(RuntimeError):
    pass


@dataclass(frozen=True)
class Prediction:
    category: str
    confidence: float


@dataclass(frozen=True)
class Classification:
    category: str
    confidence: float
    alternatives: tuple[Prediction, ...] = field(default_factory=tuple)
    error: Optional[str] = None

    @property
    def auto_fill(self) -> bool:
        return self.confidence > AUTO_FILL_CONFIDENCE

    @classmethod
    def fallback(cls, error: str) -> Classification:
        return cls(category=FALLBACK_CATEGORY, confidence=0.0, error=error)


class CategorizationService:
    def __init__(self) -> None:
        self.settings = get_settings()

    def classify(self, description: str) -> Classification:
        """Suggest an expense category for free text.

        Service failures never escape: they come back as the low-confidence
        ``Other`` fallback with ``error`` set.
        """
        text = (description or "").strip()
        if len(text) < MIN_DESCRIPTION_LENGTH:
            raise ValueError(
                f"Description must be at least {MIN_DESCRIPTION_LENGTH} characters"
            )

        try:
            if not self.settings.hf_api_token:
                raise ExternalServiceError("Categorization service is not configured")
            predictions = _fetch_zero_shot_predictions(
                text,
                model=self.settings.hf_model,
                token=self.settings.hf_api_token,
                labels=EXPENSE_CATEGORIES,
                timeout=self.settings.classifier_timeout_secs,
            )
        except ExternalServiceError as exc:
            logger.warning(f"categorization_fallback: reason={exc}")
            return Classification.fallback(str(exc))

        best = predictions[0]
        return Classification(
            category=best.category,
            confidence=best.confidence,
            alternatives=predictions[:MAX_ALTERNATIVES],
        )


def canonical_label(label: str, labels: tuple[str, ...] = EXPENSE_CATEGORIES) -> Optional[str]:
    """Map a model label onto the candidate list, tolerating one edit."""
    if label in labels:
        return label
    wanted = " ".join(label.split()).lower()
    best: Optional[str] = None
    best_distance: Optional[int] = None
    for candidate in labels:
        dist = int(Levenshtein.distance(wanted, candidate.lower()))
        if best_distance is None or dist < best_distance:
            best, best_distance = candidate, dist
    if best_distance is not None and best_distance <= 1:
        return best
    return None


def parse_predictions(payload: object, labels: tuple[str, ...]) -> tuple[Prediction, ...]:
    pairs: list[tuple[object, object]]
    if isinstance(payload, dict) and payload.get("error"):
        raise ExternalServiceError(f"Categorization service error: {payload['error']}")
    if isinstance(payload, list) and payload and isinstance(payload[0], dict):
        pairs = [(item.get("label"), item.get("score")) for item in payload]
    elif isinstance(payload, dict) and "labels" in payload and "scores" in payload:
        pairs = list(zip(payload["labels"], payload["scores"]))
    else:
        raise ExternalServiceError("Unexpected AI response structure")

    predictions: dict[str, float] = {}
    for raw_label, raw_score in pairs:
        if not isinstance(raw_label, str):
            continue
        try:
            score = float(raw_score)
        except (TypeError, ValueError):
            continue
        category = canonical_label(raw_label, labels)
        if category is None or not 0.0 <= score <= 1.0:
            continue
        predictions[category] = max(score, predictions.get(category, 0.0))

    if not predictions:
        raise ExternalServiceError("Unexpected AI response structure")
    ranked = sorted(predictions.items(), key=lambda item: item[1], reverse=True)
    return tuple(Prediction(category=c, confidence=s) for c, s in ranked)


@lru_cache(maxsize=512)
def _fetch_zero_shot_predictions(
    text: str,
    *,
    model: str,
    token: str,
    labels: tuple[str, ...],
    timeout: float,
) -> tuple[Prediction, ...]:
    body = json.dumps(
        {"inputs": text, "parameters": {"candidate_labels": list(labels)}}
    ).encode("utf-8")
    req = Request(
        HF_INFERENCE_URL.format(model=model),
        data=body,
        method="POST",
        headers={
            "Accept": "application/json",
            "Content-Type": "application/json",
            "Authorization": f"Bearer {token}",
        },
    )
    try:
        with urlopen(req, timeout=timeout) as resp:
            payload = json.loads(resp.read().decode("utf-8"))
    except (OSError, ValueError) as exc:
        # URLError, HTTPError and timeouts are all OSError; bad JSON is ValueError
        raise ExternalServiceError("Categorization request failed") from exc
    return parse_predictions(payload, labels)
