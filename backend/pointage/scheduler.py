"""
Planificateur APScheduler : rafraîchit périodiquement les snapshots
(annuaire + pointages du jour) utilisés par le moteur de pointage.
"""

import logging

from apscheduler.schedulers.background import BackgroundScheduler

from pointage.config import settings

logger = logging.getLogger(__name__)

scheduler = BackgroundScheduler()


def _refresh_snapshots(processor) -> None:
    """Tâche planifiée : recharge les snapshots. Une erreur n'arrête pas le scheduler."""
    try:
        processor.refresh_snapshots()
    except Exception as exc:
        logger.error("Erreur lors du rafraîchissement des snapshots : %s", exc)


def start_scheduler(processor) -> None:
    """Démarre le planificateur en arrière-plan (appelé au démarrage de l'API)."""
    scheduler.add_job(
        _refresh_snapshots,
        trigger="interval",
        seconds=settings.SNAPSHOT_REFRESH_SECONDS,
        args=[processor],
        id="snapshot_refresh",
        replace_existing=True,
    )
    scheduler.start()
    logger.info(
        "Scheduler démarré, rafraîchissement des snapshots toutes les %d s.",
        settings.SNAPSHOT_REFRESH_SECONDS,
    )


def stop_scheduler() -> None:
    """Arrête le planificateur proprement (appelé à l'arrêt de l'API)."""
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler arrêté.")
