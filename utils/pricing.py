from models.booking import ROOMS
from utils.availability import FULLDAY, validate_slot_room

# euros per booking; the two small rooms are priced identically
HALF_DAY_PRICES = {
    "room1": 50,
    "room2": 50,
    "large": 80,
}

FULL_DAY_PRICES = {
    "room1": 90,
    "room2": 90,
    "large": 140,
}

ROOM_LABELS = {
    "room1": "Salle 1 (35m²)",
    "room2": "Salle 2 (35m²)",
    "large": "Grande salle (70m²)",
}

SLOT_LABELS = {
    "morning": "Matin (8h-12h)",
    "afternoon": "Après-midi (13h-17h)",
    "fullday": "Journée complète (8h-17h)",
}


def slot_shape(slot: str) -> str:
    return "full_day" if slot == FULLDAY else "half_day"


def price_for(slot: str, room: str) -> int:
    validate_slot_room(slot, room)
    table = FULL_DAY_PRICES if slot == FULLDAY else HALF_DAY_PRICES
    return table[room]


def pricing_table() -> dict:
    return {
        room: {"half_day": HALF_DAY_PRICES[room], "full_day": FULL_DAY_PRICES[room]}
        for room in ROOMS
    }
