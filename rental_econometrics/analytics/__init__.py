"""
Analytics and diagnostic tools for listing regressions.

This package contains:
- Exploratory summaries
- Model diagnostics
- Coefficient interpretation
"""
