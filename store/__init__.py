"""
Document store layer: MongoDB connection, user directory and book catalog.
"""
