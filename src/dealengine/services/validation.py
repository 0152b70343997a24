# src/dealengine/services/validation.py

from typing import Any

from pydantic import BaseModel
from pydantic.alias_generators import to_camel

from dealengine.domain.deal import (
    DEAL_KINDS,
    BusinessDeal,
    Deal,
    FinancingTerms,
    HybridDeal,
    RealEstateDeal,
    resolve_field_name,
)

# Core fields that are truly required to reason about a deal
REQUIRED_CORE_FIELDS = ["id", "data"]

# Price field per kind; a deal without a price can't be valued
PRICE_FIELDS = {
    "real-estate": "purchase_price",
    "business": "asking_price",
    "hybrid": "purchase_price",
}

# key names used by records saved before the _pct suffix convention
_LEGACY_KEYS = {
    "downPayment": "down_payment_pct",
    "interestRate": "interest_rate_pct",
    "propertyManagement": "property_management_pct",
}

_PAYLOAD_MODELS: dict[str, type[BaseModel]] = {
    "real-estate": RealEstateDeal,
    "business": BusinessDeal,
    "hybrid": HybridDeal,
}


def _to_num(val: Any, field_name: str) -> float:
    """
    Coerce values like:
      - 250000
      - "250000"
      - "$250,000"
      - "6.5"
      - "6.5%"
    into float. Percent fields stay in percent units ("6.5%" -> 6.5).
    """
    if val is None:
        raise ValueError(f"Missing required numeric field: {field_name}")
    if isinstance(val, bool):
        raise ValueError(f"Invalid type for {field_name}: {type(val)}")
    if isinstance(val, (int, float)):
        return float(val)
    if isinstance(val, str):
        s = val.strip().replace(",", "").replace("$", "")
        if s.endswith("%"):
            s = s[:-1]
        try:
            return float(s)
        except ValueError as err:
            raise ValueError(f"Invalid number for {field_name}: {val!r}") from err
    raise ValueError(f"Invalid type for {field_name}: {type(val)}")


def _to_num_optional(val: Any) -> float:
    """
    Lenient converter for optional numeric fields.
    Returns 0.0 when missing/blank/garbage.
    """
    if val is None:
        return 0.0
    if isinstance(val, str) and not val.strip():
        return 0.0
    try:
        return _to_num(val, "optional")
    except ValueError:
        return 0.0


def _numeric_fields(model: type[BaseModel]) -> set[str]:
    return {name for name, info in model.model_fields.items() if info.annotation in (float, int)}


def _clean_numbers(raw: dict[str, Any], model: type[BaseModel], required: tuple[str, ...] = ()) -> dict[str, Any]:
    numeric = _numeric_fields(model)
    cleaned: dict[str, Any] = {}
    for key, val in raw.items():
        key = _LEGACY_KEYS.get(key, key)
        try:
            name = resolve_field_name(model, key)
        except ValueError:
            # unknown keys from older records are dropped
            continue
        if name in numeric:
            num = _to_num(val, name) if name in required else _to_num_optional(val)
            cleaned[name] = int(num) if model.model_fields[name].annotation is int else num
        else:
            cleaned[name] = val
    return cleaned


def _detect_kind(record: dict[str, Any], data: dict[str, Any]) -> str:
    kind = data.get("kind") or data.get("type") or record.get("kind") or record.get("dealType")
    if kind not in DEAL_KINDS:
        raise ValueError(f"Missing or invalid deal kind: {kind!r}")
    return str(kind)


def deal_from_record(record: dict[str, Any]) -> Deal:
    """
    Normalize a loosely typed persisted record into a Deal.

    Responsibilities:
      - Ensure id, payload and a recognisable kind exist.
      - Coerce numeric strings ("$250,000", "6.5%") on the payload and financing.
      - Require the kind's price field; other numbers default to 0.
    """
    # 1. Check core required fields
    for field in REQUIRED_CORE_FIELDS:
        if field not in record:
            raise ValueError(f"Missing required field: {field}")

    data = record["data"]
    if not isinstance(data, dict):
        raise ValueError("data must be an object")

    kind = _detect_kind(record, data)
    model = _PAYLOAD_MODELS[kind]
    price_field = PRICE_FIELDS[kind]
    if not {price_field, to_camel(price_field)} & data.keys():
        raise ValueError(f"Missing required field: {price_field}")

    # 2. Payload numbers
    payload = _clean_numbers(data, model, required=(price_field,))
    payload["kind"] = kind

    # 3. Financing numbers
    fin_raw = data.get("financing") or {}
    if not isinstance(fin_raw, dict):
        raise ValueError("financing must be an object")
    payload["financing"] = _clean_numbers(fin_raw, FinancingTerms)

    cleaned: dict[str, Any] = {k: v for k, v in record.items() if k not in ("dealType", "kind")}
    cleaned["id"] = str(record["id"])
    cleaned["data"] = payload
    return Deal.model_validate(cleaned)

