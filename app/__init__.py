"""
PDFCast application package.
"""
