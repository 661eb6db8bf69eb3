# server.py — FastAPI surface for the fleet PDF reports
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, Optional

from fastapi import Body, FastAPI, Header, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response, StreamingResponse

from fleet_reports import KINDS, build_report, filter_records, load_records
from pdf_composer import attachment_headers, iter_pdf_chunks, render_pdf
from report_builder import compose_report
from report_config import ROOT, configure_logging, load_config

logger = logging.getLogger("FleetReports.Server")

# ---------- Access ----------
ADMIN = "ADMINISTRADOR"
TECNICO = "TECNICO"

# kind -> roles allowed; None means any authenticated role
ROLES: Dict[str, Optional[frozenset]] = {
    "conductores": frozenset({ADMIN}),
    "vehiculos": None,
    "reservas": frozenset({ADMIN}),
    "inventario": frozenset({ADMIN}),
    "reparaciones": frozenset({ADMIN, TECNICO}),
    "usuarios": frozenset({ADMIN}),
}

PDF_ERROR = {"success": False, "message": "Error generando reporte PDF"}


def _error(status: int, message: str) -> JSONResponse:
    return JSONResponse({"success": False, "message": message}, status_code=status)


def _check_access(kind: str, role: Optional[str]) -> Optional[JSONResponse]:
    role = (role or "").strip().upper()
    if not role:
        return _error(401, "No autenticado")
    if kind not in KINDS:
        return _error(404, f"Reporte no encontrado: {kind}")
    allowed = ROLES[kind]
    if allowed is not None and role not in allowed:
        return _error(403, "No tiene permisos para generar este reporte")
    return None


def create_app(cfg: Optional[Dict[str, Any]] = None) -> FastAPI:
    cfg = cfg or load_config()

    app = FastAPI(title="Fleet Reports", version="1.0.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(cfg["cors_origins"]),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    def _stream(kind: str, records, filters: Dict[str, Any]) -> Response:
        # render fully first: a failure must never leave a half-sent attachment
        try:
            request = build_report(kind, records, filters, now=datetime.now(),
                                   caps=cfg.get("budgets") or None, tz=cfg["timezone"])
            doc = compose_report(request, institution=cfg["institution"], system_name=cfg["system_name"])
            data = render_pdf(doc, title=request.title)
        except Exception:
            logger.exception("PDF generation failed for %s", kind)
            return JSONResponse(PDF_ERROR, status_code=500)
        logger.info("Streaming %s (%d bytes, %d pages)", request.filename, len(data), len(doc.pages))
        return StreamingResponse(
            iter_pdf_chunks(data, int(cfg["chunk_size"])),
            media_type="application/pdf",
            headers=attachment_headers(request.filename),
        )

    # ---------- API ----------
    @app.get("/api/ping", response_model=None)
    def ping() -> Response:
        return JSONResponse({"ok": True, "root": str(ROOT), "reports": list(KINDS)})

    @app.get("/api/{kind}/reporte-pdf", response_model=None)
    def report_from_store(kind: str, request: Request, x_user_role: Optional[str] = Header(None)) -> Response:
        denied = _check_access(kind, x_user_role)
        if denied is not None:
            return denied
        filters = dict(request.query_params)
        try:
            records = filter_records(kind, load_records(kind, cfg["data_dir"]), filters, tz=cfg["timezone"])
        except Exception:
            logger.exception("Could not load %s records", kind)
            return JSONResponse(PDF_ERROR, status_code=500)
        return _stream(kind, records, filters)

    @app.post("/api/{kind}/reporte-pdf", response_model=None)
    def report_from_body(kind: str, payload: Optional[Dict[str, Any]] = Body(None),
                         x_user_role: Optional[str] = Header(None)) -> Response:
        denied = _check_access(kind, x_user_role)
        if denied is not None:
            return denied
        payload = payload or {}
        records = payload.get("records") or []
        filters = payload.get("filters") or {}
        if not isinstance(records, list) or not isinstance(filters, dict):
            return _error(400, "Se esperaba {'records': [...], 'filters': {...}}")
        return _stream(kind, records, filters)

    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn
    cfg = load_config()
    configure_logging(cfg["log_level"])
    uvicorn.run("server:app", host="0.0.0.0", port=8000, reload=True)
