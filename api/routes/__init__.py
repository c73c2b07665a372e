"""HTTP routers for the Bookworm API."""
