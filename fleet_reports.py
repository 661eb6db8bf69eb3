# ------------------------------------------------------------------------------
# fleet_reports.py — per-domain report shaping for the transport unit
#
# Turns already-fetched records (plain dicts with the column names of the
# conductores/vehiculos/reservas/inventario/reparaciones/usuarios tables) into
# ReportRequests: aggregate stats, chart series, alert/analysis text and the
# pre-truncated detail table. All display strings are produced here.
#
# API
#   - KINDS
#   - build_report(kind, records, filters=None, now=None, caps=None) -> ReportRequest
#   - build_<kind>_report(records, filters=None, now=None) -> ReportRequest
#   - filter_records(kind, records, filters) -> List[dict]
#   - load_records(kind, data_dir) -> List[dict]
# ------------------------------------------------------------------------------

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

import json
import logging
import math

import numpy as np
import pandas as pd

from formatting import (
    clip,
    format_date,
    format_day_month,
    format_km_thousands,
    format_money,
    format_percent,
    format_short_date,
    weekday_name,
)
from pdf_composer import ALERT, TextLine
from report_builder import ReportRequest, TableSection, TextSection
from report_limits import apply_budgets

logger = logging.getLogger("FleetReports.Reports")

KINDS = ("conductores", "vehiculos", "reservas", "inventario", "reparaciones", "usuarios")

CRITICAL = "#c0392b"
WARNING = "#e67e22"
DAY = 86400.0
LOCAL_TZ = "America/La_Paz"  # offset-aware timestamps are shown in this zone


class UnknownReportError(KeyError):
    pass


# ------------------------------ column helpers --------------------------------
def _frame(records: Iterable[Mapping[str, Any]]) -> pd.DataFrame:
    rows = list(records or [])
    return pd.DataFrame.from_records(rows) if rows else pd.DataFrame()


def _col(df: pd.DataFrame, name: str) -> pd.Series:
    if name in df.columns:
        return df[name]
    return pd.Series([None] * len(df), index=df.index, dtype=object)


def _text(df: pd.DataFrame, name: str, default: str) -> pd.Series:
    """String column; missing or empty values become `default`."""
    s = _col(df, name)
    s = s.astype(object).where(s.notna(), None)
    return s.map(lambda v: default if v is None or str(v) == "" else str(v))


def _num(df: pd.DataFrame, name: str) -> pd.Series:
    return pd.to_numeric(_col(df, name), errors="coerce").fillna(0.0)


def _to_local(value: Any, tz: str = LOCAL_TZ) -> pd.Timestamp:
    """Parse one date. Offset-aware values become naive wall time in `tz`."""
    if value is None or (isinstance(value, float) and value != value):
        return pd.NaT
    ts = pd.to_datetime(value, errors="coerce")
    if pd.isna(ts):
        return pd.NaT
    if ts.tzinfo is not None:
        ts = ts.tz_convert(tz).tz_localize(None)
    return ts


def _dates(df: pd.DataFrame, name: str, tz: str = LOCAL_TZ) -> pd.Series:
    values = [_to_local(v, tz) for v in _col(df, name)]
    return pd.Series(values, index=df.index, dtype="datetime64[ns]")


def _flag(v: Any) -> Optional[bool]:
    if isinstance(v, (bool, np.bool_)):
        return bool(v)
    if isinstance(v, (int, float, np.integer, np.floating)) and v == v:
        return v != 0
    if isinstance(v, str):
        low = v.strip().lower()
        if low in ("1", "true", "si", "sí"):
            return True
        if low in ("0", "false", "no"):
            return False
    return None


def _flags(df: pd.DataFrame, name: str) -> List[Optional[bool]]:
    return [_flag(v) for v in _col(df, name)]


def _counts(s: pd.Series) -> List[Tuple[str, int]]:
    """(value, count) pairs in order of first appearance."""
    if s.empty:
        return []
    g = s.groupby(s, sort=False).size()
    return [(str(k), int(v)) for k, v in g.items()]


def _top(counts: Sequence[Tuple[str, Any]], n: int = 5) -> List[Tuple[str, Any]]:
    return sorted(counts, key=lambda kv: kv[1], reverse=True)[:n]


def _series(counts: Sequence[Tuple[str, int]], label: Callable[[str], str] = str) -> List[Dict[str, Any]]:
    return [{"label": label(k), "value": v} for k, v in counts]


def _stat(label: str, value: Any) -> Dict[str, str]:
    return {"label": label, "value": str(value)}


def _round(x: float) -> int:
    return int(math.floor(x + 0.5))


def _num_str(x: float) -> str:
    return str(int(x)) if float(x).is_integer() else str(x)


def _full_names(df: pd.DataFrame) -> pd.Series:
    names = [f"{a} {b}".strip() for a, b in zip(_text(df, "nombres", ""), _text(df, "apellidos", ""))]
    return pd.Series(names, index=df.index, dtype=object)


def _vehicle_keys(df: pd.DataFrame) -> pd.Series:
    placa = _text(df, "placa", "")
    vid = _text(df, "vehiculo_id", "")
    return pd.Series([p or f"ID: {v}" for p, v in zip(placa, vid)], index=df.index, dtype=object)


def _filename(kind: str, now: datetime) -> str:
    return f"{kind}_{int(now.timestamp() * 1000)}.pdf"


def _general_subtitle(now: datetime, label: str = "Reporte General") -> str:
    return f"{label} - {format_date(now)}"


def _period_subtitle(filters: Mapping[str, Any], now: datetime, period: str = "Periodo", tz: str = LOCAL_TZ) -> str:
    desde, hasta = filters.get("fecha_desde"), filters.get("fecha_hasta")
    if desde and hasta:
        d0, d1 = _to_local(desde, tz), _to_local(hasta, tz)
        return f"{period}: {format_date(d0, str(desde))} al {format_date(d1, str(hasta))}"
    return _general_subtitle(now)


def _bullets(texts: Iterable[str], size: float = 10, indent: float = 70) -> List[TextLine]:
    return [TextLine(t, size=size, indent=indent) for t in texts]


# -------------------------------- conductores ---------------------------------
def build_conductores_report(records, filters: Optional[Mapping[str, Any]] = None, now: Optional[datetime] = None,
                   tz: str = LOCAL_TZ) -> ReportRequest:
    filters = filters or {}
    now = now or datetime.now()
    today = pd.Timestamp(now)
    df = _frame(records)
    n = len(df)

    enabled = _flags(df, "habilitado")
    habilitados = sum(1 for v in enabled if v is True)
    no_habilitados = sum(1 for v in enabled if v is False)

    cats = _text(df, "licencia_categoria", "N/A")
    cat_counts = _counts(cats)
    by_cat = dict(cat_counts)

    names = _full_names(df)
    venc = _dates(df, "licencia_vencimiento", tz)
    days_left = np.ceil((venc - today).dt.total_seconds() / DAY)
    proximas = df.index[(days_left > 0) & (days_left <= 30)]
    vencidas = df.index[venc < today]

    created = _dates(df, "created_at", tz).dropna().sort_values(kind="stable")
    antiguos = created.index[:5]

    habilitado_filter = filters.get("habilitado")
    if habilitado_filter not in (None, ""):
        estado = "Habilitados" if str(habilitado_filter).lower() == "true" else "No Habilitados"
        subtitle = f"Filtro: {estado} - {format_date(now)}"
    else:
        subtitle = _general_subtitle(now)

    stats = [
        _stat("Total Conductores", n),
        _stat("Habilitados", habilitados),
        _stat("No Habilitados", no_habilitados),
        _stat("Lic. Categoria A", by_cat.get("A", 0)),
        _stat("Lic. Categoria B", by_cat.get("B", 0)),
        _stat("Lic. Categoria C", by_cat.get("C", 0)),
        _stat("Proximas Vencer", len(proximas)),
        _stat("Lic. Vencidas", len(vencidas)),
    ]

    sections: List[TextSection] = []
    if len(vencidas) or len(proximas):
        lines: List[TextLine] = []
        if len(vencidas):
            lines.append(TextLine(f"CRITICO: {len(vencidas)} licencias VENCIDAS", size=10, bold=True, color=CRITICAL))
            lines += _bullets((f"• {names[i]} - Vencio: {format_date(venc[i])}" for i in vencidas[:5]), size=9, indent=90)
        if len(proximas):
            lines.append(TextLine(f"ATENCION: {len(proximas)} licencias por vencer en 30 dias", size=10, bold=True, color=WARNING))
            lines += _bullets((f"• {names[i]} - Vence en {int(days_left[i])} dias" for i in proximas[:5]), size=9, indent=90)
        sections.append(TextSection("ALERTAS DE LICENCIAS", lines, color=ALERT))

    if len(antiguos):
        sections.append(TextSection("CONDUCTORES CON MAS ANTIGUEDAD", _bullets(
            f"{k}. {names[i]} - {int((today - created[i]).days // 365)} años en servicio"
            for k, i in enumerate(antiguos, 1)
        )))

    rows = [
        [clip(name, 20), clip(num, 12), cat, format_short_date(v), "SI" if flag else "NO", clip(tel, 12)]
        for name, num, cat, v, flag, tel in zip(
            names, _col(df, "licencia_numero"), cats, venc, enabled, _col(df, "telefono"))
    ]
    return ReportRequest(
        title="REPORTE DE CONDUCTORES",
        subtitle=subtitle,
        stats=stats,
        chart_title="DISTRIBUCION POR CATEGORIA DE LICENCIA",
        chart_series=_series(cat_counts, lambda c: f"Categoria {c}"),
        text_sections=sections,
        table=TableSection(
            headers=["Nombre", "Licencia", "Cat.", "Vencimiento", "Habilitado", "Telefono"],
            rows=rows, title="DETALLE DE CONDUCTORES", row_height=22, column_width=85),
        filename=_filename("conductores", now),
    )


# --------------------------------- vehiculos ----------------------------------
def build_vehiculos_report(records, filters: Optional[Mapping[str, Any]] = None, now: Optional[datetime] = None,
                   tz: str = LOCAL_TZ) -> ReportRequest:
    filters = filters or {}
    now = now or datetime.now()
    df = _frame(records)
    n = len(df)

    estado = _text(df, "estado", "N/A")
    by_estado = dict(_counts(estado))
    anio = pd.to_numeric(_col(df, "anio"), errors="coerce")
    anio_prom = _round(anio.fillna(0).sum() / n) if n else 0
    km = _num(df, "kilometraje_actual")
    km_total = float(km.sum())
    km_prom = _round(km_total / n) if n else 0
    fuel_counts = _counts(_text(df, "tipo_combustible", "N/A"))
    years = anio[anio > 0]

    subtitle = (f"Filtros aplicados - {format_date(now)}"
                if filters.get("estado") or filters.get("tipo_combustible")
                else _general_subtitle(now, "Reporte General de Flota"))

    stats = [
        _stat("Total Vehículos", n),
        _stat("Disponibles", by_estado.get("DISPONIBLE", 0)),
        _stat("En Uso", by_estado.get("EN_USO", 0)),
        _stat("En Reparación", by_estado.get("EN_REPARACION", 0)),
        _stat("Inactivos", by_estado.get("INACTIVO", 0)),
        _stat("Año Promedio", anio_prom),
        _stat("KM Total Flota", format_km_thousands(km_total)),
        _stat("KM Promedio", format_km_thousands(km_prom)),
    ]

    sections = [
        TextSection("ANALISIS DE COMBUSTIBLE", _bullets(
            f"• {tipo}: {count} vehiculos ({format_percent(count, n)}%)" for tipo, count in fuel_counts)),
        TextSection("ANALISIS DE ANTIGUEDAD", _bullets([
            f"• Vehiculo mas antiguo: {int(years.min()) if len(years) else 0}",
            f"• Vehiculo mas reciente: {int(years.max()) if len(years) else 0}",
            f"• Promedio de edad: {now.year - anio_prom if anio_prom else 'N/A'} años",
        ])),
    ]

    rows = [
        [clip(placa, 20), clip(f"{marca} {modelo}".strip(), 18),
         str(int(a)) if a == a else "N/A", clip(st, 12), clip(fuel, 10), f"{k / 1000:.0f}K"]
        for placa, marca, modelo, a, st, fuel, k in zip(
            _col(df, "placa"), _text(df, "marca", ""), _text(df, "modelo", ""), anio,
            estado, _col(df, "tipo_combustible"), km)
    ]
    return ReportRequest(
        title="REPORTE DE FLOTA VEHICULAR",
        subtitle=subtitle,
        stats=stats,
        chart_title="DISTRIBUCION POR ESTADO",
        chart_series=_series(_counts(estado)),
        text_sections=sections,
        table=TableSection(
            headers=["Placa", "Marca/Modelo", "Año", "Estado", "Combustible", "KM"],
            rows=rows, title="DETALLE DE VEHICULOS", row_height=22, column_width=85),
        filename=_filename("vehiculos", now),
    )


# --------------------------------- reservas -----------------------------------
def build_reservas_report(records, filters: Optional[Mapping[str, Any]] = None, now: Optional[datetime] = None,
                   tz: str = LOCAL_TZ) -> ReportRequest:
    filters = filters or {}
    now = now or datetime.now()
    df = _frame(records)
    n = len(df)

    estado = _text(df, "estado", "N/A")
    by_estado = dict(_counts(estado))
    aprobadas = by_estado.get("APROBADA", 0)
    rechazadas = by_estado.get("RECHAZADA", 0)
    procesadas = aprobadas + rechazadas
    tasa = f"{aprobadas / procesadas * 100:.1f}" if procesadas else "0"

    vehicles = _vehicle_keys(df)
    top_vehicles = _top(_counts(vehicles))
    inicio = _dates(df, "fecha_inicio", tz)
    weekday_counts = _counts(inicio.dropna().map(weekday_name))

    stats = [
        _stat("Total Reservas", n),
        _stat("Pendientes", by_estado.get("PENDIENTE", 0)),
        _stat("Aprobadas", aprobadas),
        _stat("En Curso", by_estado.get("EN_CURSO", 0)),
        _stat("Completadas", by_estado.get("COMPLETADA", 0)),
        _stat("Canceladas", by_estado.get("CANCELADA", 0)),
        _stat("Rechazadas", rechazadas),
        _stat("Tasa Aprobacion", f"{tasa}%"),
    ]

    sections: List[TextSection] = []
    if top_vehicles:
        sections.append(TextSection("VEHICULOS MAS SOLICITADOS", _bullets(
            f"{k}. {veh}: {count} reservas ({format_percent(count, n)}%)"
            for k, (veh, count) in enumerate(top_vehicles, 1))))
    sections.append(TextSection("DISTRIBUCION POR DIA DE LA SEMANA", _bullets(
        f"• {dia}: {count} reservas" for dia, count in _top(weekday_counts, 7))))

    fecha = _dates(df, "fecha_reserva", tz).fillna(inicio)
    placa = _text(df, "placa", "")
    rows = [
        [clip(rid, 10, ""), p or f"#{vid}", clip(sol, 40), clip(unidad, 40, "Sin especificar"),
         format_day_month(f), f"{clip(o, 40, '')} -> {clip(d, 40, '')}", st]
        for rid, p, vid, sol, unidad, f, o, d, st in zip(
            _col(df, "id"), placa, _text(df, "vehiculo_id", ""), _col(df, "solicitante_nombre"),
            _col(df, "nombre_unidad"), fecha, _col(df, "origen"), _col(df, "destino"), estado)
    ]
    return ReportRequest(
        title="REPORTE DE RESERVAS DE VEHICULOS",
        subtitle=_period_subtitle(filters, now, tz=tz),
        stats=stats,
        chart_title="DISTRIBUCION POR ESTADO",
        chart_series=_series(_counts(estado)),
        text_sections=sections,
        table=TableSection(
            headers=["ID", "Vehiculo", "Solicitante", "Unidad", "Fecha", "Ruta", "Estado"],
            rows=rows, title="DETALLE DE RESERVAS", row_height=30,
            column_widths=[30, 60, 70, 90, 45, 105, 65]),
        filename=_filename("reservas", now),
    )


# -------------------------------- inventario ----------------------------------
def build_inventario_report(records, filters: Optional[Mapping[str, Any]] = None, now: Optional[datetime] = None,
                   tz: str = LOCAL_TZ) -> ReportRequest:
    filters = filters or {}
    now = now or datetime.now()
    df = _frame(records)
    n = len(df)

    stock = _num(df, "stock_actual")
    minimo = _num(df, "stock_minimo")
    precio = _num(df, "precio_unitario")
    valor = stock * precio
    valor_total = float(valor.sum())
    bajo = int(((stock <= minimo) & (stock > 0)).sum())
    agotados = int((stock == 0).sum())
    normal = int((stock > minimo).sum())

    nombres = _text(df, "nombre", "")
    valiosos = _top([(nm, float(v)) for nm, v in zip(nombres, valor) if v > 0])
    categoria = _text(df, "categoria_nombre", "Sin Categoria")
    cat_counts = _counts(categoria)
    cat_valor = [(str(k), float(v)) for k, v in valor.groupby(categoria, sort=False).sum().items()] if n else []

    subtitle = (f"Reporte Filtrado - {format_date(now)}"
                if filters.get("categoria_id") or str(filters.get("bajo_stock", "")).lower() == "true"
                else _general_subtitle(now, "Reporte General de Inventario"))

    stats = [
        _stat("Total Items", n),
        _stat("Valor Total", format_money(valor_total)),
        _stat("Stock Normal", normal),
        _stat("Stock Bajo", bajo),
        _stat("Agotados", agotados),
        _stat("Cantidad Total", _num_str(float(stock.sum()))),
        _stat("Valor Promedio", format_money(valor_total / n if n else 0.0)),
        _stat("Categorias", len(cat_counts)),
    ]

    sections: List[TextSection] = []
    if valiosos:
        sections.append(TextSection("ITEMS MAS VALIOSOS EN INVENTARIO", _bullets(
            f"{k}. {nm[:40]}: {format_money(v)}" for k, (nm, v) in enumerate(valiosos, 1))))
    con_valor = [(c, v) for c, v in cat_valor if v > 0]
    if con_valor:
        sections.append(TextSection("VALOR INVENTARIO POR CATEGORIA", _bullets(
            f"• {c}: {format_money(v)} ({format_percent(v, valor_total)}%)" for c, v in _top(con_valor, 8))))
    sections.append(TextSection("ALERTAS DE STOCK", _bullets([
        f"• Items con stock critico (agotados): {agotados}",
        f"• Items con stock bajo (por debajo del minimo): {bajo}",
        f"• Total items requieren atencion: {agotados + bajo}",
    ]), color=ALERT))

    rows = [
        [qr or f"#{iid}", nm, clip(cat, 40), _num_str(s), _num_str(m), clip(unidad, 20, "UNIDAD"),
         format_money(p), format_money(v)]
        for qr, iid, nm, cat, s, m, unidad, p, v in zip(
            _text(df, "codigo_qr", ""), _text(df, "id", ""), nombres, _col(df, "categoria_nombre"),
            stock, minimo, _col(df, "unidad_medida"), precio, valor)
    ]
    return ReportRequest(
        title="REPORTE DE INVENTARIO Y REPUESTOS",
        subtitle=subtitle,
        stats=stats,
        chart_title="DISTRIBUCION POR CATEGORIA",
        chart_series=_series(cat_counts, lambda c: c[:12]),
        text_sections=sections,
        table=TableSection(
            headers=["Código", "Nombre", "Categoría", "Stock", "Mín", "Unidad", "Precio", "Valor"],
            rows=rows, title="DETALLE DE INVENTARIO", row_height=30,
            column_widths=[55, 110, 80, 40, 35, 50, 55, 55]),
        filename=_filename("inventario", now),
    )


# ------------------------------- reparaciones ---------------------------------
IN_PROCESS = ("RECIBIDO", "DIAGNOSTICO", "EN_REPARACION")


def build_reparaciones_report(records, filters: Optional[Mapping[str, Any]] = None, now: Optional[datetime] = None,
                   tz: str = LOCAL_TZ) -> ReportRequest:
    filters = filters or {}
    now = now or datetime.now()
    df = _frame(records)
    n = len(df)

    costo = _num(df, "costo_total")
    costo_total = float(costo.sum())
    estado = _text(df, "estado", "N/A")
    promedio = costo_total / n if n else 0.0

    entrega = _dates(df, "fecha_real_entrega", tz)
    recepcion = _dates(df, "fecha_recepcion", tz)
    dias = np.ceil((entrega - recepcion).dt.total_seconds() / DAY).dropna()
    tiempo_prom = float(dias.mean()) if len(dias) else 0.0

    vehicles = _vehicle_keys(df)
    vehicle_counts = _counts(vehicles)
    positivos = costo[costo > 0]
    desviacion = float(np.sqrt(((costo - promedio) ** 2).sum() / (n or 1)))

    stats = [
        _stat("Total Reparaciones", n),
        _stat("Inversión Total", format_money(costo_total)),
        _stat("En Proceso", int(estado.isin(IN_PROCESS).sum())),
        _stat("Terminadas", int((estado == "TERMINADO").sum())),
        _stat("Entregadas", int((estado == "ENTREGADO").sum())),
        _stat("Costo Promedio", format_money(promedio)),
        _stat("Tiempo Promedio", f"{tiempo_prom:.1f} días"),
        _stat("Vehículos Únicos", len(vehicle_counts)),
    ]

    sections: List[TextSection] = []
    top_vehicles = _top(vehicle_counts)
    if top_vehicles:
        sections.append(TextSection("VEHICULOS CON MAS REPARACIONES", _bullets(
            f"{k}. {veh}: {count} reparaciones" for k, (veh, count) in enumerate(top_vehicles, 1))))
    sections.append(TextSection("ANALISIS DE COSTOS", _bullets([
        f"• Reparación más costosa: {format_money(float(positivos.max()) if len(positivos) else 0.0)}",
        f"• Reparación más económica: {format_money(float(positivos.min()) if len(positivos) else 0.0)}",
        f"• Desviación del promedio: {format_money(desviacion)}",
    ])))

    rows = [
        [clip(rid, 10, ""), veh.replace("ID: ", "#"), clip(tec, 30), st, f"{c:.2f}",
         format_short_date(rec), format_short_date(ent, "Pendiente")]
        for rid, veh, tec, st, c, rec, ent in zip(
            _col(df, "id"), vehicles, _col(df, "tecnico_nombre"), estado, costo, recepcion, entrega)
    ]
    return ReportRequest(
        title="REPORTE DE REPARACIONES Y MANTENIMIENTO",
        subtitle=_period_subtitle(filters, now, "Período", tz=tz),
        stats=stats,
        chart_title="DISTRIBUCION POR ESTADO",
        chart_series=_series(_counts(estado)),
        text_sections=sections,
        table=TableSection(
            headers=["ID", "Vehículo", "Técnico", "Estado", "Costo (Bs)", "Recepción", "Entrega"],
            rows=rows, title="DETALLE DE REPARACIONES", row_height=25, column_width=70),
        filename=_filename("reparaciones", now),
    )


# --------------------------------- usuarios -----------------------------------
def build_usuarios_report(records, filters: Optional[Mapping[str, Any]] = None, now: Optional[datetime] = None,
                   tz: str = LOCAL_TZ) -> ReportRequest:
    filters = filters or {}
    now = now or datetime.now()
    df = _frame(records)
    n = len(df)

    activo = _flags(df, "activo")
    activos = sum(1 for v in activo if v is True)
    inactivos = sum(1 for v in activo if v is False)
    rol_counts = _counts(_text(df, "rol_nombre", "Sin Rol"))
    by_rol = dict(rol_counts)
    depto_counts = _counts(_text(df, "departamento", "Sin Asignar"))

    filtered = any(filters.get(k) not in (None, "") for k in ("rol_id", "activo", "departamento"))
    subtitle = f"Reporte Filtrado - {format_date(now)}" if filtered else _general_subtitle(now)

    stats = [
        _stat("Total Usuarios", n),
        _stat("Activos", activos),
        _stat("Inactivos", inactivos),
        _stat("Administradores", by_rol.get("Administrador", 0)),
        _stat("Tecnicos", by_rol.get("Tecnico", 0)),
        _stat("Usuarios", by_rol.get("Usuario", 0)),
        _stat("Departamentos", len(depto_counts)),
        _stat("Tasa Activos", f"{format_percent(activos, n)}%"),
    ]

    sections: List[TextSection] = []
    top_deptos = _top(depto_counts)
    if top_deptos:
        sections.append(TextSection("DEPARTAMENTOS CON MAS USUARIOS", _bullets(
            f"{k}. {d}: {count} usuarios ({format_percent(count, n)}%)" for k, (d, count) in enumerate(top_deptos, 1))))
    sections.append(TextSection("ANALISIS DE ESTADO", _bullets([
        f"• Usuarios activos: {activos} ({format_percent(activos, n)}%)",
        f"• Usuarios inactivos: {inactivos} ({format_percent(inactivos, n)}%)",
        f"• Total de roles diferentes: {len(rol_counts)}",
    ])))

    rows = [
        [clip(name, 18), clip(email, 28), clip(rol, 15), clip(depto, 15),
         "Activo" if flag else "Inactivo", clip(tel, 10, "-")]
        for name, email, rol, depto, flag, tel in zip(
            _full_names(df), _col(df, "email"), _col(df, "rol_nombre"), _col(df, "departamento"),
            activo, _col(df, "telefono"))
    ]
    return ReportRequest(
        title="REPORTE DE USUARIOS DEL SISTEMA",
        subtitle=subtitle,
        stats=stats,
        chart_title="DISTRIBUCION POR ROL",
        chart_series=_series(rol_counts),
        text_sections=sections,
        table=TableSection(
            headers=["Nombre", "Email", "Rol", "Depto", "Estado", "Tel"],
            rows=rows, title="DETALLE DE USUARIOS", row_height=22,
            column_widths=[85, 130, 75, 80, 50, 50]),
        filename=_filename("usuarios", now),
    )


BUILDERS: Dict[str, Callable[..., ReportRequest]] = {
    "conductores": build_conductores_report,
    "vehiculos": build_vehiculos_report,
    "reservas": build_reservas_report,
    "inventario": build_inventario_report,
    "reparaciones": build_reparaciones_report,
    "usuarios": build_usuarios_report,
}


# --------------------------------- filtering ----------------------------------
# filter name -> (mode, column)
FILTERS: Dict[str, Dict[str, Tuple[str, str]]] = {
    "conductores": {"habilitado": ("flag", "habilitado")},
    "vehiculos": {"estado": ("eq", "estado"), "tipo_combustible": ("eq", "tipo_combustible")},
    "reservas": {"estado": ("eq", "estado"),
                 "fecha_desde": ("from", "fecha_inicio"), "fecha_hasta": ("to", "fecha_inicio")},
    "inventario": {"categoria_id": ("eq", "categoria_id"), "bajo_stock": ("low_stock", "stock_actual")},
    "reparaciones": {"estado": ("eq", "estado"),
                     "fecha_desde": ("from", "fecha_recepcion"), "fecha_hasta": ("to", "fecha_recepcion")},
    "usuarios": {"rol_id": ("eq", "rol_id"), "activo": ("flag", "activo"), "departamento": ("eq", "departamento")},
}


def _check_kind(kind: str) -> None:
    if kind not in BUILDERS:
        raise UnknownReportError(kind)


def filter_records(kind: str, records: Sequence[Mapping[str, Any]], filters: Optional[Mapping[str, Any]],
                   tz: str = LOCAL_TZ) -> List[Mapping[str, Any]]:
    """Apply the query-string filters of `kind`; unknown or empty filters are ignored."""
    _check_kind(kind)
    records = list(records or [])
    if not records or not filters:
        return records
    df = _frame(records)
    mask = pd.Series(True, index=df.index)
    for name, value in filters.items():
        if name not in FILTERS[kind] or value in (None, ""):
            continue
        mode, column = FILTERS[kind][name]
        if mode == "eq":
            mask &= _text(df, column, "") == str(value)
        elif mode == "flag":
            want = _flag(value)
            mask &= pd.Series([v is want for v in _flags(df, column)], index=df.index)
        elif mode in ("from", "to"):
            bound = _to_local(value, tz)
            if pd.isna(bound):
                raise ValueError(f"{name}: invalid date {value!r}")
            dates = _dates(df, column, tz)
            # "to" keeps the whole bound day
            mask &= (dates >= bound) if mode == "from" else (dates < bound.normalize() + pd.Timedelta(days=1))
        elif mode == "low_stock" and _flag(value):
            mask &= _num(df, column) <= _num(df, "stock_minimo")
    return [r for r, keep in zip(records, mask) if keep]


# ------------------------------ loading / build -------------------------------
def load_records(kind: str, data_dir: str | Path) -> List[Dict[str, Any]]:
    """Read `<data_dir>/<kind>.json`: either a list or {"<kind>": [...]}."""
    _check_kind(kind)
    path = Path(data_dir) / f"{kind}.json"
    data = json.loads(path.read_text(encoding="utf-8"))
    items = data.get(kind) if isinstance(data, dict) else data
    if not isinstance(items, list):
        raise ValueError(f"{path}: expected a list of records")
    return items


def build_report(
    kind: str,
    records: Sequence[Mapping[str, Any]],
    filters: Optional[Mapping[str, Any]] = None,
    now: Optional[datetime] = None,
    caps: Optional[Dict[str, int]] = None,
    tz: str = LOCAL_TZ,
) -> ReportRequest:
    _check_kind(kind)
    request = BUILDERS[kind](records, filters or {}, now or datetime.now(), tz=tz)
    logger.debug("Built %s report from %d records", kind, len(records))
    return apply_budgets(request, caps)
