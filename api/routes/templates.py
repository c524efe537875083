"""API routes for spreadsheet template rendering.

- Upload an XLSX template -> list its sheets and placeholders
- Render the template with a JSON substitution mapping -> download XLSX
"""
from __future__ import annotations

import logging
import uuid
from typing import Any, Optional, Union

from fastapi import APIRouter, File, HTTPException, UploadFile
from fastapi.responses import Response
from pydantic import BaseModel, Field

from services.template_config import get_template_settings
from services.xlsx_template import (
    ReferenceParseError,
    SheetNotFoundError,
    TemplateLoadError,
    Workbook,
    validate_workbook,
)

logger = logging.getLogger(__name__)


router = APIRouter(prefix="/templates", tags=["templates"])

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

# In-memory storage for uploaded templates (raw bytes, loaded fresh per render)
_active_templates: dict[str, bytes] = {}
_template_filenames: dict[str, str] = {}


# =============================================================================
# MODELS
# =============================================================================

class SheetSubstitution(BaseModel):
    """Substitutions for one sheet."""
    sheet: Optional[Union[int, str]] = None  # Sheet id or name
    substitutions: dict[str, Any] = Field(default_factory=dict)


class RenderRequest(BaseModel):
    """Request to render a template.

    Either a single ``sheet`` + ``substitutions`` pair, or a list of them in
    ``sheets`` (applied in order).
    """
    sheet: Optional[Union[int, str]] = None
    substitutions: dict[str, Any] = Field(default_factory=dict)
    sheets: Optional[list[SheetSubstitution]] = None


# =============================================================================
# ENDPOINTS
# =============================================================================

@router.post("/", response_model=dict)
async def upload_template(file: UploadFile = File(...)):
    """Upload an XLSX template and list the placeholders it contains."""
    if not file.filename:
        raise HTTPException(400, "No filename provided")

    if not file.filename.lower().endswith(".xlsx"):
        raise HTTPException(400, "Only .xlsx templates are supported")

    settings = get_template_settings()
    content = await file.read()
    if len(content) > settings.max_upload_bytes:
        raise HTTPException(400, f"Template exceeds {settings.max_upload_bytes} bytes")

    template_id = f"{uuid.uuid4().hex[:8]}_{file.filename}"
    try:
        summary = _template_summary(Workbook(content), template_id, file.filename)
    except (TemplateLoadError, ReferenceParseError) as e:
        raise HTTPException(400, f"Failed to load template: {e}")

    _active_templates[template_id] = content
    _template_filenames[template_id] = file.filename
    logger.info(f"[UPLOAD] Stored template {template_id} ({len(content):,} bytes)")

    return summary


@router.get("/{template_id}")
async def get_template(template_id: str):
    """Get the sheets and placeholders of an uploaded template."""
    if template_id not in _active_templates:
        raise HTTPException(404, "Template not found")

    workbook = Workbook(_active_templates[template_id])
    return _template_summary(workbook, template_id, _template_filenames.get(template_id))


@router.post("/{template_id}/render")
async def render_template(template_id: str, request: RenderRequest):
    """Fill the template and return the resulting XLSX file."""
    if template_id not in _active_templates:
        raise HTTPException(404, "Template not found")

    settings = get_template_settings()
    steps = request.sheets or [
        SheetSubstitution(sheet=request.sheet, substitutions=request.substitutions)
    ]

    workbook = Workbook(_active_templates[template_id], compression=settings.compression)
    try:
        for step in steps:
            sheet = step.sheet if step.sheet is not None else settings.default_sheet
            workbook.substitute(sheet, step.substitutions)
    except SheetNotFoundError as e:
        raise HTTPException(404, str(e))
    except (TemplateLoadError, ReferenceParseError) as e:
        raise HTTPException(400, f"Malformed template: {e}")

    if settings.validate_output:
        report = validate_workbook(workbook)
        if report.has_errors:
            logger.warning(f"[RENDER] {template_id}: output has {len(report.issues)} validation issues")

    data = workbook.generate()
    filename = _template_filenames[template_id].rsplit(".", 1)[0] + "_filled.xlsx"
    logger.info(f"[RENDER] {template_id}: {len(steps)} sheets substituted, {len(data):,} bytes")

    return Response(
        content=data,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.delete("/{template_id}")
async def delete_template(template_id: str):
    """Forget an uploaded template."""
    if template_id not in _active_templates:
        raise HTTPException(404, "Template not found")

    del _active_templates[template_id]
    _template_filenames.pop(template_id, None)
    return {"status": "deleted", "id": template_id}


# =============================================================================
# HELPERS
# =============================================================================

def _template_summary(workbook: Workbook, template_id: str, filename: Optional[str]) -> dict:
    """Sheets, tables and placeholders for the UI."""
    sheets = []
    for info in workbook.sheets:
        placeholders = workbook.placeholders(info.id)
        sheets.append({
            "id": info.id,
            "name": info.name,
            "tables": [table.model_dump() for table in workbook.tables(info.id)],
            "placeholders": {
                ref: [token.model_dump(exclude={"start", "end"}) for token in tokens]
                for ref, tokens in placeholders.items()
            },
        })

    return {
        "id": template_id,
        "filename": filename,
        "sheets": sheets,
    }
