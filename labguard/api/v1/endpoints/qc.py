from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import StreamingResponse
from typing import Dict, List, Optional
from datetime import date
import io
import logging

from pydantic import BaseModel, Field, FiniteFloat

from ....config import AppConfig
from ....exceptions import (
    AnalyteNotFoundError, DuplicateAnalyteError, InvalidConfigurationError,
    InvalidMeasurementError, MeasurementNotFoundError, NoDataToExportError, QCError
)
from ....qc.charting import levey_jennings_series
from ....qc.domain import ControlConfiguration
from ....qc.export import csv_filename, export_analyte_csv, export_workbook, workbook_filename
from ....qc.service import QCService
from ....qc.statistics import summarize
from ....qc.westgard import WestgardRuleEngine

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/qc", tags=["Quality Control"])

# Pydantic models for request/response
class WestgardEvaluationRequest(BaseModel):
    value: float = Field(allow_inf_nan=False)
    history: List[FiniteFloat] = Field(default_factory=list, description="Prior values, oldest first")
    mean: float = Field(allow_inf_nan=False)
    sd: float = Field(ge=0, allow_inf_nan=False)
    include_all_rules: bool = False

class AnalyteRequest(BaseModel):
    analyte_id: str = Field(min_length=1, max_length=50)
    display_name: str = Field(min_length=1, max_length=100)
    mean: float = Field(allow_inf_nan=False)
    sd: float = Field(ge=0, allow_inf_nan=False)
    unit: str = ""

class ConfigUpdateRequest(BaseModel):
    mean: float = Field(allow_inf_nan=False)
    sd: float = Field(ge=0, allow_inf_nan=False)
    unit: Optional[str] = None
    display_name: Optional[str] = None

class MeasurementSubmission(BaseModel):
    value: float = Field(allow_inf_nan=False)
    run_date: date
    comment: Optional[str] = None

class MeasurementEdit(BaseModel):
    value: Optional[float] = Field(default=None, allow_inf_nan=False)
    run_date: Optional[date] = None
    comment: Optional[str] = None

def get_qc_service(request: Request) -> QCService:
    return request.app.state.qc_service

def get_app_config(request: Request) -> AppConfig:
    return request.app.state.config

def _http_error(e: QCError) -> HTTPException:
    if isinstance(e, (AnalyteNotFoundError, MeasurementNotFoundError, NoDataToExportError)):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, DuplicateAnalyteError):
        return HTTPException(status_code=409, detail=str(e))
    if isinstance(e, (InvalidMeasurementError, InvalidConfigurationError)):
        return HTTPException(status_code=400, detail=str(e))
    return HTTPException(status_code=500, detail=str(e))

def _record_payload(record, newest_first: bool = False) -> Dict:
    points = [p.to_dict() for p in record.measurements]
    if newest_first:
        points.reverse()
    return {
        "config": record.config.to_dict(),
        "measurements": points,
    }

@router.post("/evaluate", response_model=Dict)
async def evaluate_westgard_rules(request: WestgardEvaluationRequest):
    """Classify a single value against the values measured before it"""
    engine = WestgardRuleEngine(mean=request.mean, sd=request.sd)
    result = engine.evaluate(request.value, request.history)
    response = {
        "success": True,
        **result.to_dict(),
        "z_score": engine.z_score(request.value),
    }
    if request.include_all_rules:
        response["all_rules"] = engine.find_violations(request.value, request.history)
    return response

@router.get("/analytes", response_model=Dict)
async def list_analytes(service: QCService = Depends(get_qc_service)):
    """List analyte configurations sorted by display name"""
    try:
        configs = service.list_configurations()
        return {
            "success": True,
            "analytes": [c.to_dict() for c in configs],
        }
    except Exception as e:
        logger.error(f"Error listing analytes: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))

@router.post("/analytes", response_model=Dict, status_code=201)
async def register_analyte(
    analyte: AnalyteRequest,
    service: QCService = Depends(get_qc_service)
):
    """Register a new analyte with its target mean and SD"""
    try:
        config = service.register_analyte(ControlConfiguration(
            analyte_id=analyte.analyte_id,
            display_name=analyte.display_name,
            mean=analyte.mean,
            sd=analyte.sd,
            unit=analyte.unit,
        ))
        return {
            "success": True,
            "config": config.to_dict(),
            "message": "Analyte registered successfully"
        }
    except QCError as e:
        raise _http_error(e)
    except Exception as e:
        logger.error(f"Error registering analyte: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))

@router.get("/analytes/{analyte_id}", response_model=Dict)
async def get_analyte_history(
    analyte_id: str,
    newest_first: bool = Query(default=False),
    service: QCService = Depends(get_qc_service)
):
    """Configuration and classified history of an analyte"""
    try:
        record = service.get_history(analyte_id)
        return {"success": True, **_record_payload(record, newest_first)}
    except QCError as e:
        raise _http_error(e)
    except Exception as e:
        logger.error(f"Error loading history for '{analyte_id}': {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))

@router.put("/analytes/{analyte_id}/config", response_model=Dict)
async def update_configuration(
    analyte_id: str,
    update: ConfigUpdateRequest,
    service: QCService = Depends(get_qc_service)
):
    """Change target mean/SD; the whole history is re-classified"""
    try:
        record = service.update_configuration(
            analyte_id,
            mean=update.mean,
            sd=update.sd,
            unit=update.unit,
            display_name=update.display_name,
        )
        return {
            "success": True,
            "message": "Configuration updated, history re-evaluated",
            **_record_payload(record),
        }
    except QCError as e:
        raise _http_error(e)
    except Exception as e:
        logger.error(f"Error updating configuration for '{analyte_id}': {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))

@router.post("/analytes/{analyte_id}/measurements", response_model=Dict, status_code=201)
async def add_measurement(
    analyte_id: str,
    submission: MeasurementSubmission,
    service: QCService = Depends(get_qc_service)
):
    """Add a control measurement"""
    try:
        point = service.add_measurement(analyte_id, submission.value, submission.run_date, submission.comment)
        return {
            "success": True,
            "measurement": point.to_dict(),
            "message": "QC result submitted successfully"
        }
    except QCError as e:
        raise _http_error(e)
    except Exception as e:
        logger.error(f"Error submitting QC result: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))

@router.put("/analytes/{analyte_id}/measurements/{measurement_id}", response_model=Dict)
async def edit_measurement(
    analyte_id: str,
    measurement_id: str,
    edit: MeasurementEdit,
    service: QCService = Depends(get_qc_service)
):
    """Edit value, date or comment of a measurement; an explicit null comment clears it"""
    try:
        point = service.edit_measurement(
            analyte_id, measurement_id, **edit.model_dump(exclude_unset=True)
        )
        return {"success": True, "measurement": point.to_dict()}
    except QCError as e:
        raise _http_error(e)
    except Exception as e:
        logger.error(f"Error editing QC result: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))

@router.delete("/analytes/{analyte_id}/measurements/{measurement_id}", response_model=Dict)
async def delete_measurement(
    analyte_id: str,
    measurement_id: str,
    service: QCService = Depends(get_qc_service)
):
    try:
        service.delete_measurement(analyte_id, measurement_id)
        return {"success": True, "message": "QC result deleted"}
    except QCError as e:
        raise _http_error(e)
    except Exception as e:
        logger.error(f"Error deleting QC result: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))

@router.get("/analytes/{analyte_id}/violations", response_model=Dict)
async def list_violations(
    analyte_id: str,
    service: QCService = Depends(get_qc_service)
):
    """Warnings and rejections, newest first"""
    try:
        flagged = service.violations(analyte_id)
        return {
            "success": True,
            "analyte_id": analyte_id,
            "violations": [
                {
                    "id": p.id,
                    "date": p.date.isoformat(),
                    "value": p.value,
                    "status": p.status.value,
                    "rule_violated": p.rule_violated,
                }
                for p in flagged
            ]
        }
    except QCError as e:
        raise _http_error(e)
    except Exception as e:
        logger.error(f"Error listing violations for '{analyte_id}': {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))

@router.get("/analytes/{analyte_id}/chart", response_model=Dict)
async def get_chart(
    analyte_id: str,
    service: QCService = Depends(get_qc_service)
):
    """Levey-Jennings chart data"""
    try:
        record = service.get_history(analyte_id)
        return {"success": True, **levey_jennings_series(record.config, record.measurements)}
    except QCError as e:
        raise _http_error(e)
    except Exception as e:
        logger.error(f"Error building chart for '{analyte_id}': {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))

@router.get("/analytes/{analyte_id}/statistics", response_model=Dict)
async def get_statistics(
    analyte_id: str,
    service: QCService = Depends(get_qc_service)
):
    """Statistical summary of an analyte's history"""
    try:
        record = service.get_history(analyte_id)
        statistics = summarize(record.config, record.measurements)
        if statistics is None:
            return {
                "success": True,
                "message": "No results found for this analyte",
                "statistics": None
            }
        return {
            "success": True,
            "analyte": record.config.display_name,
            "statistics": statistics.to_dict()
        }
    except QCError as e:
        raise _http_error(e)
    except Exception as e:
        logger.error(f"Error getting statistics for '{analyte_id}': {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))

@router.get("/analytes/{analyte_id}/export.csv")
async def export_analyte(
    analyte_id: str,
    service: QCService = Depends(get_qc_service),
    config: AppConfig = Depends(get_app_config)
):
    """CSV download of one analyte's history"""
    try:
        record = service.get_history(analyte_id)
        content = export_analyte_csv(record.config, record.measurements, config.export)
        filename = csv_filename(record.config, date.today())
        return StreamingResponse(
            io.BytesIO(content),
            media_type="text/csv; charset=utf-8",
            headers={"Content-Disposition": f"attachment; filename={filename}"}
        )
    except QCError as e:
        raise _http_error(e)
    except Exception as e:
        logger.error(f"Error exporting '{analyte_id}': {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))

@router.get("/export/workbook")
async def export_all(
    service: QCService = Depends(get_qc_service),
    config: AppConfig = Depends(get_app_config)
):
    """Excel workbook with one sheet per analyte"""
    try:
        configs = {}
        histories = {}
        for analyte in service.list_configurations():
            record = service.get_history(analyte.analyte_id)
            configs[analyte.analyte_id] = record.config
            histories[analyte.analyte_id] = record.measurements

        content = export_workbook(configs, histories, config.export)
        return StreamingResponse(
            io.BytesIO(content),
            media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
            headers={"Content-Disposition": f"attachment; filename={workbook_filename(date.today())}"}
        )
    except QCError as e:
        raise _http_error(e)
    except Exception as e:
        logger.error(f"Error generating workbook export: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))
