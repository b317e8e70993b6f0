"""
Background enrichment pipeline.

Components:
- sanctuary.py: protected-time detection
- inference.py: category inference
- suggestions.py: subcategory proposal threshold
- review.py: four-perspective weighted review
- runner.py: orchestration, replay and retry
"""
