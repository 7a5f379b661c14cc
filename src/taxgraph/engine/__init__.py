"""Compute engine: sessions, event processing, validation, and tracing.

Import patterns:
    from taxgraph.engine import TaxGraphEngine, MockClock
"""

from taxgraph.engine.clock import DEFAULT_CLOCK, Clock, MockClock, SystemClock
from taxgraph.engine.context import EngineRuleContext
from taxgraph.engine.engine import TaxGraphEngine
from taxgraph.engine.materialize import PlanCache, SessionPlan, build_plan
from taxgraph.engine.trace import TraceRecorder
from taxgraph.engine.validator import EventValidator

__all__ = [
    "DEFAULT_CLOCK",
    "Clock",
    "EngineRuleContext",
    "EventValidator",
    "MockClock",
    "PlanCache",
    "SessionPlan",
    "SystemClock",
    "TaxGraphEngine",
    "TraceRecorder",
    "build_plan",
]
