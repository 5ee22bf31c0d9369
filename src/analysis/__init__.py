"""Number analysis core.

Takes a single non-negative integer and reports its properties by running
independent checks concurrently and joining their outcomes.

Architecture (bottom-up):
- analyzer: Pure predicates plus delayed "check" wrappers that simulate work
- schemas: Result record, per-check outcomes, wire-level error body
- errors: AnalysisError hierarchy (invalid input, cancelled, check failed)
- orchestrator: Validation, fan-out onto an owned worker pool, join, fold
"""
