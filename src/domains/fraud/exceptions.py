"""Errors raised by the fraud scoring core."""


class RiskAssessmentError(ValueError):
    """Malformed input reaching the scoring core, e.g. mismatched vector lengths."""
