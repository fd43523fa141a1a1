"""
Rental Listing Econometrics Package

Regression analysis of rental listing prices for a single region: data
cleaning, exploratory summaries, OLS model fitting, backward stepwise
selection, assumption diagnostics, Box-Cox response transformations and
coefficient interpretation.
"""

__version__ = "1.0.0"
