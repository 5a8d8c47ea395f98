"""
Community Match - collaborator matching for community surveys

This package turns self-report survey responses into numeric attribute
profiles and ranks compatible collaborators for each submitter.

Key Design Decisions:
- Likert answers are copied verbatim; the 1-10 scale is the internal scale
- Scoring is a transparent weighted-distance model, not a learned one
- Every score is decomposed so it can be audited and re-derived
- All weights, thresholds and penalty tables are versioned configuration
- Results are delivered asynchronously and polled under an attempt ceiling
"""

__version__ = "1.0.0"
