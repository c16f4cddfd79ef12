'''
City Insights Test Suite

Test Modules:
-------------
- test_feature_computer.py: normalisation, weights, missing inputs, explanations
- test_quality_checker.py: issues, warnings, completeness walk
- test_quality_guard.py: blockers and recommendations
- test_confidence.py: factor calculations, weighting, levels
- test_inference_rules.py: threshold tables, bounds, determinism
- test_fallback.py: tiers, never-null guarantee, no error leakage
- test_pipeline.py: routing, outcome conversion, end-to-end scenarios
- test_api.py: FastAPI route handlers

Running Tests:
--------------
    pytest city_insights/tests/
    pytest city_insights/tests/ -m scenario
'''
