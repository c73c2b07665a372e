"""
Scheduler package for periodic background jobs.

This package contains:
- The keep-alive ping that stops the hosting platform idling the service
"""
