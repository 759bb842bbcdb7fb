"""
Security utilities and authentication
"""

import secrets
import time
from collections import defaultdict
from typing import Dict, List, Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from seating.core.config import settings
from seating.utils.responses import rate_limit_error

# Request timestamps per client IP over the last minute
rate_limiter: Dict[str, List[float]] = defaultdict(list)

security = HTTPBearer()

def verify_admin_token(credentials: HTTPAuthorizationCredentials = Depends(security)) -> str:
    """Staff and organizer routes share one admin token"""
    if not secrets.compare_digest(credentials.credentials, settings.ADMIN_TOKEN):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid admin token"
        )
    return credentials.credentials

def rate_limit_check(client_ip: str, limit: Optional[int] = None) -> bool:
    """Sliding one-minute window per IP address"""
    if limit is None:
        limit = settings.RATE_LIMIT_PER_MINUTE

    now = time.time()
    recent = [stamp for stamp in rate_limiter[client_ip] if stamp > now - 60]
    if len(recent) >= limit:
        rate_limiter[client_ip] = recent
        return False

    recent.append(now)
    rate_limiter[client_ip] = recent
    return True

def get_client_ip(request: Request) -> str:
    """Client IP, honouring reverse-proxy headers"""
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()

    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip

    return request.client.host if request.client else "unknown"

def enforce_rate_limit(request: Request) -> None:
    """Route dependency: throttle per client IP before any store work runs"""
    if not rate_limit_check(get_client_ip(request)):
        rate_limit_error()
