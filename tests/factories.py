"""Builders shared by the test modules."""

from src.chargist.models.domain import Charger, ChargingSlot, ChargingSpeed, ConnectorType, Coordinate


def make_charger(charger_id: str, name: str, lat: float, lng: float, **kwargs) -> Charger:
    return Charger(id=charger_id, name=name, location=Coordinate(lat, lng), created_by="seed", **kwargs)


def make_slot(
    slot_id: str,
    charger_id: str,
    speed: ChargingSpeed = ChargingSpeed.FAST,
    connector: ConnectorType = ConnectorType.CCS2,
    price: float = 0.35,
    available: bool = True,
    damaged: bool = False,
) -> ChargingSlot:
    return ChargingSlot(
        id=slot_id,
        charger_id=charger_id,
        speed=speed,
        connector_type=connector,
        price=price,
        is_available=available,
        is_damaged=damaged,
    )
