# app/routers/health.py
"""
System health check endpoint.
Returns status of backend + registry DB + CEP admin service reachability.
"""

import requests
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from sqlalchemy import text
from app.database import get_db
from app.config import settings
from app.services.event_processor_client import SERVICE_PATH
from datetime import datetime

router = APIRouter()


@router.get("/health", summary="System health check")
def health_check(db: Session = Depends(get_db)):
    """
    Returns:
    - Backend status
    - Registry database connectivity
    - CEP admin service reachability (fetches the service WSDL)
    """
    result = {
        "status": "ok",
        "timestamp": datetime.utcnow().isoformat(),
        "backend": "ok",
        "registry": "unknown",
        "cep_admin": "unknown",
    }

    try:
        db.execute(text("SELECT 1"))
        result["registry"] = "ok"
    except Exception as e:
        result["registry"] = f"error: {str(e)}"
        result["status"] = "degraded"

    try:
        resp = requests.get(
            f"{settings.CEP_ADMIN_URL.rstrip('/')}{SERVICE_PATH}?wsdl",
            verify=settings.CEP_CA_BUNDLE or settings.CEP_VERIFY_SSL,
            timeout=3,
        )
        result["cep_admin"] = "ok" if resp.status_code == 200 else f"http_{resp.status_code}"
    except requests.exceptions.ConnectionError:
        result["cep_admin"] = "unreachable"
        result["status"] = "degraded"
    except Exception as e:
        result["cep_admin"] = f"error: {str(e)}"
        result["status"] = "degraded"

    return result
