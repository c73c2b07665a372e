"""
Image hosting for book post covers.
"""
