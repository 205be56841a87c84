"""Narrative-analysis request gateway."""

from src.agents.analysis_gateway import AnalysisGateway, AnalysisUnavailableError

__all__ = ["AnalysisGateway", "AnalysisUnavailableError"]
