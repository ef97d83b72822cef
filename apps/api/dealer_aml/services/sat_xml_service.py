"""
SAT vehicle notice (aviso) XML renderer.

Pure functions over frozen dataclasses. Element names, nesting and field
order are fixed by the authority's veh.xsd schema; any change here makes
filings invalid, so the order below is the contract.

Output is UTF-8, one element per line joined with "\\n", and optional
elements are emitted only when they carry a value. The same input always
renders to the same bytes.
"""
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from xml.sax.saxutils import escape as _sax_escape

from dealer_aml.core.config import settings
from dealer_aml.core.exceptions import ValidationError
from dealer_aml.services import period_service

XML_DECLARATION = '<?xml version="1.0" encoding="UTF-8"?>'
XSI_NAMESPACE = "http://www.w3.org/2001/XMLSchema-instance"

PERSON_TYPES = ("fisica", "moral", "fideicomiso")
ADDRESS_TYPES = ("nacional", "extranjero")
VEHICLE_TYPES = ("terrestre", "maritimo", "aereo")

_EXTRA_ENTITIES = {'"': "&quot;", "'": "&apos;"}


class SatDocumentError(ValidationError):
    """Record is missing data the schema requires."""


# =============================================================================
# Input types
# =============================================================================

@dataclass(frozen=True)
class SatHeader:
    """Obligated subject identity printed once per file."""

    obligated_subject_key: str  # clave_sujeto_obligado (RFC)
    activity_key: str  # clave_actividad
    reported_month: str  # YYYYMM


@dataclass(frozen=True)
class Representative:
    """Trust representative (apoderado / delegado fiduciario)."""

    first_name: str | None = None
    last_name: str | None = None
    second_last_name: str | None = None
    birth_date: date | None = None


@dataclass(frozen=True)
class PersonIdentity:
    """Subject of the notice. person_type selects the schema branch."""

    person_type: str  # fisica | moral | fideicomiso
    first_name: str | None = None
    last_name: str | None = None
    second_last_name: str | None = None
    birth_date: date | None = None
    rfc: str | None = None
    curp: str | None = None
    nationality: str | None = None
    economic_activity: str | None = None
    business_name: str | None = None
    incorporation_date: date | None = None
    commercial_activity: str | None = None
    trust_identifier: str | None = None
    representative: Representative | None = None


@dataclass(frozen=True)
class Address:
    address_type: str  # nacional | extranjero
    country: str | None = None
    state: str | None = None
    city: str | None = None
    neighborhood: str | None = None
    street: str | None = None
    external_number: str | None = None
    internal_number: str | None = None
    postal_code: str | None = None


@dataclass(frozen=True)
class BeneficialOwner:
    person_type: str
    first_name: str | None = None
    last_name: str | None = None
    second_last_name: str | None = None
    birth_date: date | None = None
    nationality: str | None = None
    business_name: str | None = None
    incorporation_date: date | None = None
    trust_identifier: str | None = None


@dataclass(frozen=True)
class Vehicle:
    """One vehicle. Land vehicles carry VIN/REPUVE/plates; marine and air carry serial/flag/registration."""

    vehicle_type: str  # terrestre | maritimo | aereo
    brand: str
    model: str
    year: int
    vin: str | None = None
    repuve: str | None = None
    plates: str | None = None
    serial_number: str | None = None
    flag: str | None = None
    registration: str | None = None
    armor_level: str | None = None


@dataclass(frozen=True)
class Settlement:
    payment_date: date | datetime
    payment_form: str
    monetary_instrument: str
    currency: str
    amount: Decimal


@dataclass(frozen=True)
class OperationDetail:
    operation_date: date | datetime
    postal_code: str
    operation_type: str
    vehicles: tuple[Vehicle, ...]
    settlements: tuple[Settlement, ...]


@dataclass(frozen=True)
class SatNoticeRecord:
    """One <aviso>: a single alert ready for rendering."""

    reference: str
    priority: str
    alert_type: str
    person: PersonIdentity
    address: Address
    operation: OperationDetail
    beneficial_owners: tuple[BeneficialOwner, ...] = field(default_factory=tuple)


# =============================================================================
# Formatting helpers
# =============================================================================

def escape(value) -> str:
    """Escape the five XML metacharacters."""
    if value is None:
        return ""
    return _sax_escape(str(value), _EXTRA_ENTITIES)


def _local_date(value: date | datetime) -> date:
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(period_service.sat_timezone()).date()
    return value


def format_day(value: date | datetime) -> str:
    """YYYYMMDD in the authority's zone."""
    return _local_date(value).strftime("%Y%m%d")


def format_month(value: date | datetime) -> str:
    """YYYYMM in the authority's zone."""
    return _local_date(value).strftime("%Y%m")


def format_amount(value: Decimal | int | float | str) -> str:
    return str(Decimal(str(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


class _XmlLines:
    """Accumulates one element per line."""

    def __init__(self):
        self.lines: list[str] = []

    def open(self, tag: str) -> None:
        self.lines.append(f"<{tag}>")

    def close(self, tag: str) -> None:
        self.lines.append(f"</{tag}>")

    def leaf(self, tag: str, value) -> None:
        self.lines.append(f"<{tag}>{escape(value)}</{tag}>")

    def optional(self, tag: str, value) -> None:
        if value is None or value == "":
            return
        self.leaf(tag, value)

    def render(self) -> bytes:
        return "\n".join(self.lines).encode("utf-8")


# =============================================================================
# Validation
# =============================================================================

def _require(condition, message: str) -> None:
    if not condition:
        raise SatDocumentError(message)


def _validate_record(record: SatNoticeRecord) -> None:
    person = record.person
    _require(person.person_type in PERSON_TYPES, f"Unknown person type: {person.person_type}")
    if person.person_type == "fisica":
        _require(person.first_name and person.last_name,
                 f"Notice {record.reference}: individual requires nombre and apellido_paterno")
    else:
        _require(person.business_name,
                 f"Notice {record.reference}: {person.person_type} requires denominacion_razon")
    _require(record.address.address_type in ADDRESS_TYPES,
             f"Unknown address type: {record.address.address_type}")

    operation = record.operation
    _require(operation.vehicles, f"Notice {record.reference}: at least one vehicle is required")
    _require(operation.settlements, f"Notice {record.reference}: at least one settlement is required")
    for vehicle in operation.vehicles:
        _require(vehicle.vehicle_type in VEHICLE_TYPES, f"Unknown vehicle type: {vehicle.vehicle_type}")
        _require(vehicle.brand and vehicle.model and vehicle.year,
                 f"Notice {record.reference}: vehicle requires marca_fabricante, modelo and anio")
    for owner in record.beneficial_owners:
        _require(owner.person_type in PERSON_TYPES, f"Unknown person type: {owner.person_type}")


# =============================================================================
# Writers
# =============================================================================

def _write_person(out: _XmlLines, person: PersonIdentity) -> None:
    out.open("tipo_persona")
    if person.person_type == "fisica":
        out.open("persona_fisica")
        out.optional("nombre", person.first_name)
        out.optional("apellido_paterno", person.last_name)
        out.optional("apellido_materno", person.second_last_name)
        out.optional("fecha_nacimiento", person.birth_date and format_day(person.birth_date))
        out.optional("rfc", person.rfc)
        out.optional("curp", person.curp)
        out.optional("pais_nacionalidad", person.nationality)
        out.optional("actividad_economica", person.economic_activity)
        out.close("persona_fisica")
    elif person.person_type == "moral":
        out.open("persona_moral")
        out.optional("denominacion_razon", person.business_name)
        out.optional("fecha_constitucion", person.incorporation_date and format_day(person.incorporation_date))
        out.optional("rfc", person.rfc)
        out.optional("pais_nacionalidad", person.nationality)
        out.optional("giro_mercantil", person.commercial_activity)
        out.close("persona_moral")
    else:
        out.open("fideicomiso")
        out.optional("denominacion_razon", person.business_name)
        out.optional("rfc", person.rfc)
        out.optional("identificador_fideicomiso", person.trust_identifier)
        rep = person.representative
        if rep is not None:
            out.open("apoderado_delegado")
            out.optional("nombre", rep.first_name)
            out.optional("apellido_paterno", rep.last_name)
            out.optional("apellido_materno", rep.second_last_name)
            out.optional("fecha_nacimiento", rep.birth_date and format_day(rep.birth_date))
            out.close("apoderado_delegado")
        out.close("fideicomiso")
    out.close("tipo_persona")


def _write_address(out: _XmlLines, address: Address) -> None:
    out.open("tipo_domicilio")
    out.open(address.address_type)
    if address.address_type == "extranjero":
        out.optional("pais", address.country)
        out.optional("estado_provincia", address.state)
        out.optional("ciudad_poblacion", address.city)
    out.optional("colonia", address.neighborhood)
    out.optional("calle", address.street)
    out.optional("numero_exterior", address.external_number)
    out.optional("numero_interior", address.internal_number)
    out.optional("codigo_postal", address.postal_code)
    out.close(address.address_type)
    out.close("tipo_domicilio")


def _write_beneficial_owner(out: _XmlLines, owner: BeneficialOwner) -> None:
    out.open("dueno_beneficiario")
    out.open("tipo_persona")
    if owner.person_type == "fisica":
        out.open("persona_fisica")
        out.optional("nombre", owner.first_name)
        out.optional("apellido_paterno", owner.last_name)
        out.optional("apellido_materno", owner.second_last_name)
        out.optional("fecha_nacimiento", owner.birth_date and format_day(owner.birth_date))
        out.optional("pais_nacionalidad", owner.nationality)
        out.close("persona_fisica")
    elif owner.person_type == "moral":
        out.open("persona_moral")
        out.optional("denominacion_razon", owner.business_name)
        out.optional("fecha_constitucion", owner.incorporation_date and format_day(owner.incorporation_date))
        out.optional("pais_nacionalidad", owner.nationality)
        out.close("persona_moral")
    else:
        out.open("fideicomiso")
        out.optional("denominacion_razon", owner.business_name)
        out.optional("identificador_fideicomiso", owner.trust_identifier)
        out.close("fideicomiso")
    out.close("tipo_persona")
    out.close("dueno_beneficiario")


def _write_vehicle(out: _XmlLines, vehicle: Vehicle) -> None:
    tag = f"datos_vehiculo_{vehicle.vehicle_type}"
    out.open("tipo_vehiculo")
    out.open(tag)
    out.leaf("marca_fabricante", vehicle.brand)
    out.leaf("modelo", vehicle.model)
    out.leaf("anio", vehicle.year)
    if vehicle.vehicle_type == "terrestre":
        out.optional("vin", vehicle.vin)
        out.optional("repuve", vehicle.repuve)
        out.optional("placas", vehicle.plates)
    else:
        out.optional("numero_serie", vehicle.serial_number)
        out.optional("bandera", vehicle.flag)
        out.optional("matricula", vehicle.registration)
    out.optional("nivel_blindaje", vehicle.armor_level)
    out.close(tag)
    out.close("tipo_vehiculo")


def _write_settlement(out: _XmlLines, settlement: Settlement) -> None:
    out.open("datos_liquidacion")
    out.leaf("fecha_pago", format_day(settlement.payment_date))
    out.leaf("forma_pago", settlement.payment_form)
    out.leaf("instrumento_monetario", settlement.monetary_instrument)
    out.leaf("moneda", settlement.currency)
    out.leaf("monto_operacion", format_amount(settlement.amount))
    out.close("datos_liquidacion")


def _write_aviso(out: _XmlLines, record: SatNoticeRecord) -> None:
    out.open("aviso")
    out.leaf("referencia_aviso", record.reference)
    out.leaf("prioridad", record.priority)
    out.open("alerta")
    out.leaf("tipo_alerta", record.alert_type)
    out.close("alerta")

    out.open("persona_aviso")
    _write_person(out, record.person)
    _write_address(out, record.address)
    out.close("persona_aviso")

    for owner in record.beneficial_owners:
        _write_beneficial_owner(out, owner)

    operation = record.operation
    out.open("detalle_operaciones")
    out.open("datos_operacion")
    out.leaf("fecha_operacion", format_day(operation.operation_date))
    out.leaf("codigo_postal", operation.postal_code)
    out.leaf("tipo_operacion", operation.operation_type)
    for vehicle in operation.vehicles:
        _write_vehicle(out, vehicle)
    for settlement in operation.settlements:
        _write_settlement(out, settlement)
    out.close("datos_operacion")
    out.close("detalle_operaciones")
    out.close("aviso")


def _open_archivo(out: _XmlLines, header: SatHeader) -> None:
    _require(header.obligated_subject_key, "clave_sujeto_obligado is required")
    _require(header.activity_key, "clave_actividad is required")
    namespace = settings.SAT_XML_NAMESPACE
    out.lines.append(XML_DECLARATION)
    out.lines.append(
        f'<archivo xsi:schemaLocation="{namespace} {settings.SAT_XML_SCHEMA_FILE}" '
        f'xmlns="{namespace}" xmlns:xsi="{XSI_NAMESPACE}">'
    )
    out.open("informe")
    out.leaf("mes_reportado", header.reported_month)
    out.open("sujeto_obligado")
    out.leaf("clave_sujeto_obligado", header.obligated_subject_key)
    out.leaf("clave_actividad", header.activity_key)
    out.close("sujeto_obligado")


def _close_archivo(out: _XmlLines) -> None:
    out.close("informe")
    out.close("archivo")


def render_notice(header: SatHeader, records: list[SatNoticeRecord]) -> bytes:
    """Render one file holding every record of a notice, in input order."""
    _require(records, "A notice file needs at least one record")
    for record in records:
        _validate_record(record)

    out = _XmlLines()
    _open_archivo(out, header)
    for record in records:
        _write_aviso(out, record)
    _close_archivo(out)
    return out.render()


def render_single(header: SatHeader, record: SatNoticeRecord) -> bytes:
    """
    Render a standalone file for one alert.

    mes_reportado comes from the operation date rather than a notice period.
    """
    _validate_record(record)
    single_header = SatHeader(
        obligated_subject_key=header.obligated_subject_key,
        activity_key=header.activity_key,
        reported_month=format_month(record.operation.operation_date),
    )
    out = _XmlLines()
    _open_archivo(out, single_header)
    _write_aviso(out, record)
    _close_archivo(out)
    return out.render()
