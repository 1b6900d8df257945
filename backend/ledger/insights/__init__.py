from .base import Insight, InsightContext, InsightRule
from .engine import InsightEngine

__all__ = ["Insight", "InsightContext", "InsightEngine", "InsightRule"]
