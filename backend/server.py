from fastapi import FastAPI, APIRouter, HTTPException, Depends
from dotenv import load_dotenv
from starlette.middleware.cors import CORSMiddleware
import os
import logging
from pathlib import Path
from pydantic import BaseModel, ValidationError
from typing import List, Optional
from datetime import date, datetime

ROOT_DIR = Path(__file__).parent
load_dotenv(ROOT_DIR / '.env')

from compliance.engine import analyse
from compliance.models import (
    Activity, ActivityType, AppSettings, ComplianceAnalysis, ComplianceReport
)
from compliance.service import ComplianceService, get_compliance_service

# Create the main app
app = FastAPI(title="TachoCheck - Lenk- und Ruhezeiten")
api_router = APIRouter(prefix="/api")

VERSION = "1.0.0"

# ============== Models ==============

class ActivityUpdate(BaseModel):
    type: Optional[ActivityType] = None
    start: Optional[datetime] = None
    end: Optional[datetime] = None

class FinishActivityRequest(BaseModel):
    end: Optional[datetime] = None  # Standard: jetzt

class WeeklyRestReference(BaseModel):
    last_weekly_rest_end: Optional[datetime] = None

class ComplianceCheckRequest(BaseModel):
    activities: List[Activity] = []
    last_weekly_rest_end: Optional[datetime] = None
    now: Optional[datetime] = None  # Für Nachberechnung / Tests

# ============== Activity Routes ==============

@api_router.get("/activities", response_model=List[Activity])
async def list_activities(service: ComplianceService = Depends(get_compliance_service)):
    activities = await service.get_activities()
    return sorted(activities, key=lambda act: act.start)

@api_router.post("/activities", response_model=Activity)
async def create_activity(
    activity: Activity,
    service: ComplianceService = Depends(get_compliance_service)
):
    """Neue Aktivität eintragen (end=None → läuft noch)"""
    created = await service.add_activity(activity)
    if created is None:
        logger.warning(f"Aktivität {activity.id} existiert bereits")
        raise HTTPException(status_code=400, detail="Aktivität mit dieser ID existiert bereits")
    return created

@api_router.put("/activities/{activity_id}", response_model=Activity)
async def update_activity(
    activity_id: str,
    changes: ActivityUpdate,
    service: ComplianceService = Depends(get_compliance_service)
):
    try:
        updated = await service.update_activity(activity_id, changes.model_dump(exclude_unset=True))
    except ValidationError as e:
        logger.warning(f"Ungültige Änderung an Aktivität {activity_id}: {e}")
        raise HTTPException(status_code=422, detail=str(e))
    if not updated:
        logger.warning(f"Aktivität {activity_id} nicht gefunden")
        raise HTTPException(status_code=404, detail="Aktivität nicht gefunden")
    return updated

@api_router.post("/activities/{activity_id}/finish", response_model=Activity)
async def finish_activity(
    activity_id: str,
    request: FinishActivityRequest,
    service: ComplianceService = Depends(get_compliance_service)
):
    """Laufende Aktivität beenden"""
    try:
        finished = await service.finish_activity(activity_id, request.end)
    except ValidationError as e:
        logger.warning(f"Ungültiges Ende für Aktivität {activity_id}: {e}")
        raise HTTPException(status_code=422, detail=str(e))
    if not finished:
        logger.warning(f"Aktivität {activity_id} nicht gefunden")
        raise HTTPException(status_code=404, detail="Aktivität nicht gefunden")
    return finished

@api_router.delete("/activities/{activity_id}")
async def delete_activity(
    activity_id: str,
    service: ComplianceService = Depends(get_compliance_service)
):
    if not await service.delete_activity(activity_id):
        logger.warning(f"Aktivität {activity_id} nicht gefunden")
        raise HTTPException(status_code=404, detail="Aktivität nicht gefunden")
    return {"deleted": True}

# ============== Reference & Settings Routes ==============

@api_router.get("/weekly-rest-reference", response_model=WeeklyRestReference)
async def get_weekly_rest_reference(service: ComplianceService = Depends(get_compliance_service)):
    return WeeklyRestReference(last_weekly_rest_end=await service.get_weekly_rest_reference())

@api_router.put("/weekly-rest-reference", response_model=WeeklyRestReference)
async def set_weekly_rest_reference(
    request: WeeklyRestReference,
    service: ComplianceService = Depends(get_compliance_service)
):
    """Ende der letzten Wochenruhezeit vor dem Fahrtenbuch setzen"""
    await service.set_weekly_rest_reference(request.last_weekly_rest_end)
    return WeeklyRestReference(last_weekly_rest_end=await service.get_weekly_rest_reference())

@api_router.get("/settings", response_model=AppSettings)
async def get_settings(service: ComplianceService = Depends(get_compliance_service)):
    return await service.get_settings()

@api_router.put("/settings", response_model=AppSettings)
async def update_settings(
    settings: AppSettings,
    service: ComplianceService = Depends(get_compliance_service)
):
    return await service.save_settings(settings)

# ============== Compliance Routes ==============

@api_router.get("/compliance", response_model=ComplianceAnalysis)
async def get_compliance(
    display: bool = False,
    service: ComplianceService = Depends(get_compliance_service)
):
    """
    Verstöße + Status-Zusammenfassung (EU 561/2006)

    display=true begrenzt die Restzeiten auf 0 (Anzeige)
    """
    analysis = await service.get_analysis()
    if display:
        analysis.summary = analysis.summary.clamped()
    return analysis

@api_router.post("/compliance/check", response_model=ComplianceAnalysis)
async def check_compliance(request: ComplianceCheckRequest):
    """Zustandslose Prüfung - Fahrtenbuch im Request"""
    return analyse(request.activities, request.last_weekly_rest_end, request.now)

@api_router.get("/reports", response_model=ComplianceReport)
async def get_report(
    start: date,
    end: date,
    service: ComplianceService = Depends(get_compliance_service)
):
    if start > end:
        logger.warning(f"Ungültiger Zeitraum {start} bis {end}")
        raise HTTPException(status_code=400, detail="Startdatum liegt nach dem Enddatum")
    return await service.get_report(start, end)

# ============== Status Routes ==============

@api_router.get("/")
async def root():
    return {"message": "TachoCheck API", "version": VERSION}

@api_router.get("/health")
async def health():
    return {
        "status": "healthy",
        "store_backend": os.environ.get("STORE_BACKEND", "memory"),
        "version": VERSION
    }

# Include router
app.include_router(api_router)

app.add_middleware(
    CORSMiddleware,
    allow_credentials=True,
    allow_origins=os.environ.get('CORS_ORIGINS', '*').split(','),
    allow_methods=["*"],
    allow_headers=["*"],
)

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

@app.on_event("shutdown")
async def shutdown_store():
    await get_compliance_service().store.close()

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
