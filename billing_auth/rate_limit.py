"""
Per-IP request rate limiting using slowapi.

This sits in front of the per-identity throttle guard and caps raw
request volume from a single client. Three tiers:
  • strict  – 5/min  (endpoints that send email – prevents mail flooding)
  • auth    – 10/min (endpoints that check a password or OTP)
  • default – 60/min (everything else)
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

# Named rate strings for use in @limiter.limit() decorators
STRICT = "5/minute"     # register, resend-otp, forgot-password
AUTH = "10/minute"      # login, verify-otp, reset-password, change-password
DEFAULT = "60/minute"   # profile, admin listing

limiter = Limiter(key_func=get_remote_address, default_limits=[DEFAULT])
