"""Automated triage of GitHub issues.

This package retrieves an issue and its repository's label catalog, asks
a language-model-backed classifier to recommend labels with justifications,
and optionally applies them back to the issue. It provides:
- A step/workflow engine with a two-phase build-then-run lifecycle
- A GitHub REST client for issues and labels
- An LLM triager agent guarded against prompt injection
- Run events with logging and Prometheus sinks
"""
