"""Engine Layer - Core Orchestration

This module provides the core engine layer, implementing:
- AcquisitionOrchestrator: Main entry point for acquisitions
- StrategyChain / Strategy: Ordered, immutable acquisition strategies
- RetryPolicy: Failure-kind driven advance/stop decisions
- AcquisitionResult: Standardized result format
- classifier: Tool output / HTTP status / player status classification
"""

from .classifier import (
    classify_http_status,
    classify_playability,
    classify_text,
    classify_tool_output,
    exception_for,
)
from .orchestrator import AcquisitionOrchestrator
from .result import (
    AcquisitionAttempt,
    AcquisitionResult,
    AcquisitionStatus,
    AttemptOutcome,
    user_message_for,
)
from .strategy import AttemptContext, RetryPolicy, Strategy, StrategyChain, StrategyExecutor, StrategyKind

__all__ = [
    "AcquisitionOrchestrator",
    "AcquisitionAttempt",
    "AcquisitionResult",
    "AcquisitionStatus",
    "AttemptContext",
    "AttemptOutcome",
    "RetryPolicy",
    "Strategy",
    "StrategyChain",
    "StrategyExecutor",
    "StrategyKind",
    "classify_http_status",
    "classify_playability",
    "classify_text",
    "classify_tool_output",
    "exception_for",
    "user_message_for",
]
