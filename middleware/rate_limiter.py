"""
Rate limiting middleware for FastAPI using slowapi.
Protects the submission endpoints against spam and API abuse.
"""
import os

from slowapi import Limiter
from slowapi.util import get_remote_address

# Initialize the shared limiter (will be attached to app.state in main.py)
limiter = Limiter(key_func=get_remote_address, enabled=os.getenv("RATE_LIMIT_ENABLED", "true").lower() == "true")

# Rate limit configurations for different endpoints
RATE_LIMIT_FEEDBACK = "10/minute"  # feedback submissions per minute per IP
RATE_LIMIT_REPORT = "20/hour"  # abuse reports per hour per IP
RATE_LIMIT_EVENT_CREATE = "30/hour"  # event submissions per hour per IP
