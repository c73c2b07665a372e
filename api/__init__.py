"""
FastAPI REST API for the Bookworm book recommendation service.

This package provides:
- User registration and login with signed tokens
- Book post creation with image upload
- Paginated, newest-first post listing
- Owner-only post deletion
"""
