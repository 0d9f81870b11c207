"""Commentary panel orchestration and host interfaces."""

from .refresh_orchestrator import PanelState, RefreshOrchestrator, RefreshOutcome

__all__ = ["PanelState", "RefreshOrchestrator", "RefreshOutcome"]
