"""
RV Service - reviewer assignment and rotation for pull requests
"""
__version__ = "0.1.0"
