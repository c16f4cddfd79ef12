"""
City Insights Package.

Explainable city scoring and a deterministic, rule-based insight pipeline with
a resilience layer that always returns a usable result.

Subpackages:
    - api: FastAPI route handlers
    - core: Configuration and dependencies
    - models: Pydantic schemas and enums
    - services: Scoring, validation, inference, fallback and orchestration
"""

__version__ = "1.0.0"
