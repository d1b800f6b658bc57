"""efkcheck - Helm chart validation harness for EFK logging pipelines."""

__version__ = "0.1.0"
