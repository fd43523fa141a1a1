"""
Regression models for rental listing analysis.

This package contains:
- Listing data loading and cleaning
- Regression formulas and design matrices
- OLS model fitting
- Backward stepwise selection by AIC
- Box-Cox response transformation profiles
"""
