"""
Authentication for the Bookworm API.

- Password hashing (bcrypt)
- Signed, time-limited identity tokens
- The auth gate that turns a bearer header into a user
"""
