"""Signal Verdict: relevance tiering, theme extraction, market sizing and
viability scoring for startup hypotheses."""

__version__ = "0.1.0"
