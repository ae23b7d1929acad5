"""
Conversion pipeline services.
"""
