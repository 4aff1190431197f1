"""Change applier: merge diffs into user-editable collection trees."""

from __future__ import annotations

from .applier import ApplyOutcome, ChangeApplier
from .builder import BASE_URL_VARIABLE, build_request
from .customization import DEPRECATED_PREFIX, customized_fields, is_customized
from .locator import EntityLocation, locate, normalize_endpoint_path
from .pairing import EndpointMove, PairingConfidence, pair_moves

__all__ = [
    "BASE_URL_VARIABLE",
    "DEPRECATED_PREFIX",
    "ApplyOutcome",
    "ChangeApplier",
    "EndpointMove",
    "EntityLocation",
    "PairingConfidence",
    "build_request",
    "customized_fields",
    "is_customized",
    "locate",
    "normalize_endpoint_path",
    "pair_moves",
]
