"""
Insurance policy detail records.

A lead or policy carries one detail record whose shape depends on the line of
business. The backend tags each record with ``kind`` and the record is decoded
once, here, into the matching model.
"""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


class _Detail(BaseModel):
    model_config = ConfigDict(from_attributes=True, extra="ignore")

    lead_id: str
    fecha_creacion: datetime | None = None
    fecha_actualizacion: datetime | None = None


class VehicularDetail(_Detail):
    kind: Literal["vehicular"] = "vehicular"

    marca_auto: str
    modelo_auto: str
    ano_auto: int
    placa_auto: str
    tipo_uso: str


class HealthDetail(_Detail):
    kind: Literal["salud"] = "salud"

    edad: int
    sexo: str
    grupo_familiar: str | None = None
    estado_clinico: str | None = None
    zona_trabajo_vivienda: str | None = None
    preferencia_plan: str | None = None
    coberturas: str | None = None
    reembolso: bool = False


class SctrDetail(_Detail):
    """Workers' compensation (SCTR) policy for a company."""

    kind: Literal["sctr"] = "sctr"

    razon_social: str
    ruc: str
    numero_trabajadores: int
    monto_planilla: float
    actividad_negocio: str
    tipo_seguro: str


PolicyDetail = Annotated[Union[VehicularDetail, HealthDetail, SctrDetail], Field(discriminator="kind")]

_policy_detail_adapter: TypeAdapter[PolicyDetail] = TypeAdapter(PolicyDetail)


def parse_policy_detail(raw: object) -> VehicularDetail | HealthDetail | SctrDetail:
    """
    Decode a detail record using its ``kind`` discriminant.

    Raises pydantic.ValidationError when ``kind`` is missing or unknown, or the
    fields do not fit the tagged model.
    """
    return _policy_detail_adapter.validate_python(raw)
