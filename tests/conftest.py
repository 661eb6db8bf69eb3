# Tests configuration for fleet reports
import sys
from datetime import datetime
from pathlib import Path

import pytest

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))


@pytest.fixture
def now():
    """Fixed generation time: Monday 19 October 2026, 14:05."""
    return datetime(2026, 10, 19, 14, 5)


@pytest.fixture
def conductores_records():
    return [
        {"nombres": "Ana", "apellidos": "Quispe", "licencia_categoria": "A",
         "licencia_vencimiento": "2026-10-01", "habilitado": True, "created_at": "2015-03-01"},
        {"nombres": "Luis", "apellidos": "Mamani", "licencia_categoria": "B",
         "licencia_vencimiento": "2026-11-01", "habilitado": False, "created_at": "2020-01-01"},
        {"nombres": "Rosa", "apellidos": "Condori", "licencia_categoria": "B",
         "licencia_vencimiento": "2028-01-01", "habilitado": 1, "created_at": None},
    ]


@pytest.fixture
def vehiculos_records():
    return [
        {"placa": "1234-ABC", "marca": "Toyota", "modelo": "Hilux", "anio": 2015,
         "estado": "DISPONIBLE", "tipo_combustible": "DIESEL", "kilometraje_actual": 120000},
        {"placa": "5678-DEF", "marca": "Nissan", "modelo": "Patrol", "anio": 2021,
         "estado": "EN_USO", "tipo_combustible": "GASOLINA", "kilometraje_actual": 30000},
        {"placa": "9012-GHI", "marca": "Toyota", "modelo": "Land Cruiser", "anio": 2019,
         "estado": "DISPONIBLE", "tipo_combustible": "DIESEL", "kilometraje_actual": 0},
    ]


@pytest.fixture
def reservas_records():
    return [
        {"id": 1, "vehiculo_id": 1, "placa": "1234-ABC", "estado": "APROBADA", "fecha_inicio": "2026-10-19",
         "solicitante_nombre": "Carla Rojas", "nombre_unidad": "Rectorado", "origen": "La Paz", "destino": "El Alto"},
        {"id": 2, "vehiculo_id": 1, "placa": "1234-ABC", "estado": "APROBADA", "fecha_inicio": "2026-10-20"},
        {"id": 3, "vehiculo_id": 1, "placa": "1234-ABC", "estado": "RECHAZADA", "fecha_inicio": "2026-10-26"},
        {"id": 4, "vehiculo_id": 7, "placa": None, "estado": "PENDIENTE", "fecha_inicio": "2026-11-02"},
    ]


@pytest.fixture
def inventario_records():
    return [
        {"id": 1, "codigo_qr": "INV-001", "nombre": "Filtro de aceite", "categoria_nombre": "Filtros",
         "stock_actual": 10, "stock_minimo": 5, "precio_unitario": 25.5, "unidad_medida": "PIEZA"},
        {"id": 2, "codigo_qr": None, "nombre": "Pastillas de freno", "categoria_nombre": "Frenos",
         "stock_actual": 2, "stock_minimo": 4, "precio_unitario": 120},
        {"id": 3, "codigo_qr": "INV-003", "nombre": "Bujia", "categoria_nombre": "Electrico",
         "stock_actual": 0, "stock_minimo": 3, "precio_unitario": 15},
    ]


@pytest.fixture
def reparaciones_records():
    return [
        {"id": 1, "vehiculo_id": 1, "placa": "1234-ABC", "tecnico_nombre": "Jorge Limachi", "estado": "ENTREGADO",
         "costo_total": 100, "fecha_recepcion": "2026-10-01", "fecha_real_entrega": "2026-10-04"},
        {"id": 2, "vehiculo_id": 1, "placa": "1234-ABC", "tecnico_nombre": "Jorge Limachi", "estado": "TERMINADO",
         "costo_total": 300, "fecha_recepcion": "2026-10-05", "fecha_real_entrega": "2026-10-10"},
        {"id": 3, "vehiculo_id": 2, "placa": "5678-DEF", "tecnico_nombre": None, "estado": "EN_REPARACION",
         "costo_total": 0, "fecha_recepcion": "2026-10-15", "fecha_real_entrega": None},
    ]


@pytest.fixture
def usuarios_records():
    return [
        {"nombres": "Marco", "apellidos": "Choque", "email": "mchoque@umsa.bo", "rol_nombre": "Administrador",
         "departamento": "Transporte", "activo": True, "telefono": "71234567"},
        {"nombres": "Elena", "apellidos": "Vargas", "email": "evargas@umsa.bo", "rol_nombre": "Tecnico",
         "departamento": "Taller", "activo": True},
        {"nombres": "Hugo", "apellidos": "Flores", "email": "hflores@umsa.bo", "rol_nombre": "Usuario",
         "departamento": "Transporte", "activo": False},
    ]
