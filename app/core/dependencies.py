"""
Core dependencies for authentication, the validation gate and job admission
"""

from fastapi import Depends, Header, HTTPException, Security
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from supabase import Client
from typing import Optional
import logging

from app.config import settings
from app.core.errors import to_http_exception
from app.database.supabase_client import get_supabase, get_service_supabase
from app.modules.auth.service import AuthService
from app.modules.jobs.admission import JobAdmission
from app.modules.jobs.gate import GateResult, ValidationGate
from app.modules.jobs.store import JobStore

logger = logging.getLogger(__name__)

security = HTTPBearer()


def get_auth_service(supabase: Client = Depends(get_supabase)) -> AuthService:
    return AuthService(supabase)


def get_current_user_id(
    credentials: HTTPAuthorizationCredentials = Security(security),
    auth_service: AuthService = Depends(get_auth_service)
) -> dict:
    """Extract current user info from JWT token"""
    token = credentials.credentials
    user_data = auth_service.get_current_user(token)
    return user_data


def get_gate(supabase: Client = Depends(get_service_supabase)) -> ValidationGate:
    return ValidationGate(supabase, settings)


def get_job_store(supabase: Client = Depends(get_service_supabase)) -> JobStore:
    return JobStore(supabase, settings)


def get_admission(store: JobStore = Depends(get_job_store)) -> JobAdmission:
    return JobAdmission(store)


def get_idempotency_key(idempotency_key: Optional[str] = Header(default=None, alias="Idempotency-Key")) -> Optional[str]:
    return idempotency_key


def require_gate(check, *args) -> GateResult:
    """Run a gate check; a rejection is returned to the caller and no job is admitted."""
    try:
        result = check(*args)
    except Exception as e:
        logger.error(f"Gate check failed against the store: {e}")
        raise HTTPException(status_code=503, detail="Service temporarily unavailable")
    if not result.ok:
        raise to_http_exception(result.rejection)
    return result


def admit_job(admission: JobAdmission, kind, payload, idempotency_key: str):
    try:
        return admission.admit(kind, payload, idempotency_key)
    except Exception as e:
        logger.error(f"Failed to admit {kind.value} job: {e}")
        raise HTTPException(status_code=503, detail="Service temporarily unavailable")
