"""
safescan: gluten and milk protein safety checks for packaged food.

Expose the main classes so consumers can import directly from the package.
"""

from .models import (
    AdvisoryDegraded,
    AdvisoryOk,
    AdvisoryRequest,
    ClassificationOutcome,
    ClassificationVerdict,
    ErrorKind,
    HistoryEntry,
    ProductRecord,
    Status,
)
from .errors import AdvisoryUnavailable, LookupNotFound, LookupTransportError, ScanError
from .advisory_client import AdvisoryClient, parse_advisory_reply
from .config import Settings
from .heuristic import HeuristicClassifier, classify_product
from .history import HistoryStore
from .openfoodfacts_client import OpenFoodFactsClient, ProductDataSource
from .orchestrator import (
    ClassificationOrchestrator,
    ScanSession,
    build_orchestrator,
    merge_verdicts,
)

__all__ = [
    "AdvisoryClient",
    "AdvisoryDegraded",
    "AdvisoryOk",
    "AdvisoryRequest",
    "AdvisoryUnavailable",
    "ClassificationOrchestrator",
    "ClassificationOutcome",
    "ClassificationVerdict",
    "ErrorKind",
    "HeuristicClassifier",
    "HistoryEntry",
    "HistoryStore",
    "LookupNotFound",
    "LookupTransportError",
    "OpenFoodFactsClient",
    "ProductDataSource",
    "ProductRecord",
    "ScanError",
    "ScanSession",
    "Settings",
    "Status",
    "build_orchestrator",
    "classify_product",
    "merge_verdicts",
    "parse_advisory_reply",
]
