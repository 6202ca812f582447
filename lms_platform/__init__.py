"""Learning Management System (LMS) Platform - Backend.

This repository is intentionally backend-only:
- User accounts with cookie or bearer JWT sessions.
- Course / lecture catalog with media stored on Cloudinary.
- Subscription billing through Razorpay.

Core concepts:
- The auth gate trusts the token for identity and role, but re-reads the
  database for subscription status.
- Subscription state moves pending -> active -> canceled, and only the billing
  module writes it.
"""

__all__ = ["__version__"]

__version__ = "0.1.0"
