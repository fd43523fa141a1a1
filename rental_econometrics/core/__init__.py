"""
Core settings and error types shared by the models and analytics packages.
"""
