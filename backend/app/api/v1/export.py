"""CSV export of the full taxonomy and task set."""
import logging
from datetime import date
from typing import Annotated

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse

from app.core.deps import get_taxonomy_repository
from app.services.csv_codec import export_csv
from app.services.taxonomy_repo import TaxonomyRepository

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/csv", summary="Export universes, phyla, families, groups and tasks as CSV")
async def export_system_csv(
    repository: Annotated[TaxonomyRepository, Depends(get_taxonomy_repository)],
):
    """Stream the current state in the import format; re-importing it is a no-op."""
    snapshot = await repository.load_snapshot()
    content = export_csv(snapshot)
    filename = f"atol-export-{date.today().isoformat()}.csv"

    logger.info("CSV export: %d tasks", len(snapshot.tasks))
    return StreamingResponse(
        iter([content]),
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )
