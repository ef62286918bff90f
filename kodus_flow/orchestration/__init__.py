"""Top-level SDK entry point."""

from kodus_flow.orchestration.models import OrchestrationResult
from kodus_flow.orchestration.orchestrator import SDKOrchestrator

__all__ = ["OrchestrationResult", "SDKOrchestrator"]
