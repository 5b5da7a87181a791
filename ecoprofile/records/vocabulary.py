"""
Ecological Profile Vocabularies

Fixed option lists offered by the resident census form. Multi-valued
facility fields draw their values from these lists; "Others" is always
allowed as a catch-all.
"""

from typing import Dict, List

HOUSE_OWNERSHIP = ["Owned", "Rented", "Caretaker", "Others"]
LOT_OWNERSHIP = ["Owned", "Rented", "Caretaker", "Others"]
DWELLING_TYPES = ["Permanent concrete", "Semi Permanent", "Temporary", "Others"]
LIGHTING_SOURCES = ["Electricity", "Kerosene", "Solar", "Others"]
WATER_SOURCES = ["Spring", "Deepwell (private)", "Deepwell (public)", "Piped water", "Others"]

WATER_STORAGE = ["Tank", "Elevated Tank", "Jars", "Drums/Cans", "Plastic Containers", "Others"]
FOOD_STORAGE = ["Refrigerator", "Cabinet/Shelves", "Others"]
TOILET_FACILITIES = [
    "Flush with septic tank",
    "Flush with sewer system",
    "Water sealed (pit)",
    "Pit privy",
    "Others",
]
DRAINAGE_FACILITIES = ["Open drainage", "Closed drainage", "None", "Others"]
GARBAGE_DISPOSAL = [
    "City collection system",
    "Communal pit",
    "Backyard pit",
    "Open dump",
    "Composting",
    "Burning",
    "Others",
]
COMMUNICATION_SERVICES = ["Telephone", "Cellular networks", "Internet", "Postal Services", "Others"]
MEANS_OF_TRANSPORT = ["PUB", "PUJ", "Taxi", "Private car", "Motorcycle", "Bicycle", "Others"]
INFO_SOURCES = ["TV", "Radio", "Newspaper", "Internet", "Others"]

# Multi-valued submission field -> allowed values
FACILITY_VOCABULARY: Dict[str, List[str]] = {
    "water_storage": WATER_STORAGE,
    "food_storage_type": FOOD_STORAGE,
    "toilet_facilities": TOILET_FACILITIES,
    "drainage_facilities": DRAINAGE_FACILITIES,
    "garbage_disposal": GARBAGE_DISPOSAL,
    "communication_services": COMMUNICATION_SERVICES,
    "means_of_transport": MEANS_OF_TRANSPORT,
    "info_sources": INFO_SOURCES,
}

# Single-valued housing field -> allowed values
HOUSING_VOCABULARY: Dict[str, List[str]] = {
    "house_ownership": HOUSE_OWNERSHIP,
    "lot_ownership": LOT_OWNERSHIP,
    "dwelling_type": DWELLING_TYPES,
    "lighting_source": LIGHTING_SOURCES,
    "water_supply_level": WATER_SOURCES,
}


def unknown_values(field: str, values: List[str]) -> List[str]:
    """Return the values not in the vocabulary for a multi-valued field."""
    allowed = FACILITY_VOCABULARY.get(field)
    if allowed is None:
        return []
    return [v for v in values if v not in allowed]
