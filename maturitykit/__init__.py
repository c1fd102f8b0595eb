"""DevOps maturity assessments: survey scoring, assessment storage and access checks."""

__version__ = "0.1.0"