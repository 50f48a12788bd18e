"""
Router pour le scanner RFID : état observable, injection de scans, capture de carte.
"""

from fastapi import APIRouter, Depends

from pointage.schemas.scanner import EnrollmentState, ScannerStatus, ScanRequest, ScanResult
from pointage.services.scan_service import ScanProcessor, get_scan_processor

router = APIRouter(prefix="/api/v1/scanner", tags=["Scanner RFID"])


@router.get("/status", response_model=ScannerStatus, summary="État du scanner")
def get_status(processor: ScanProcessor = Depends(get_scan_processor)):
    """
    Connexion au lecteur (connected / disconnected / error), message du dernier
    évènement et derniers scans (plus récent en premier).
    """
    return processor.get_status()


@router.post("/scans", response_model=ScanResult, summary="Injecter un scan de badge")
async def submit_scan(data: ScanRequest, processor: ScanProcessor = Depends(get_scan_processor)):
    """
    Traite un UID de carte exactement comme un message du lecteur.

    Répond toujours 200 : un badge inconnu, une carte partagée par plusieurs
    employés ou un échec d'écriture sont signalés dans `outcome` et `message`.
    """
    return await processor.handle_scan(data.card_uid)


@router.get("/enrollment", response_model=EnrollmentState, summary="État de la capture de carte")
def get_enrollment(processor: ScanProcessor = Depends(get_scan_processor)):
    return processor.get_enrollment()


@router.post("/enrollment", response_model=EnrollmentState, summary="Armer la capture de carte")
def arm_enrollment(processor: ScanProcessor = Depends(get_scan_processor)):
    """
    Le prochain badge présenté n'est pas pointé : son UID est capturé pour
    l'enregistrement d'un nouvel employé (s'il n'est pas déjà attribué).
    """
    return processor.arm_enrollment()


@router.delete("/enrollment", response_model=EnrollmentState, summary="Annuler la capture de carte")
def cancel_enrollment(processor: ScanProcessor = Depends(get_scan_processor)):
    return processor.cancel_enrollment()
