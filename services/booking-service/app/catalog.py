import enum


class ItemCategory(str, enum.Enum):
    TRACTORS = "Tractors"
    HARVESTERS = "Harvesters"
    JCB = "JCB"
    WORKERS = "Workers"
    DRONES = "Drones"
    SPRAYERS = "Sprayers"
    DRIVERS = "Drivers"
    BOREWELL = "Borewell"


CATEGORY_WORK_PURPOSES: dict[ItemCategory, tuple[str, ...]] = {
    ItemCategory.TRACTORS: (
        "Rotavator",
        "MB Plough",
        "Disc Harrow",
        "Cultivator",
        "Seed Drill",
        "Paddy Transplanter",
        "Boom Sprayer",
        "Leveller",
        "Transportation",
    ),
    ItemCategory.HARVESTERS: ("Paddy Harvestor", "Paddy Chain Harvestor", "Maize Harvestor"),
    ItemCategory.JCB: ("Digging / Earth Moving", "Land Levelling"),
    ItemCategory.WORKERS: ("Sowing", "Planting", "Weeding", "Spraying", "Others"),
    ItemCategory.DRONES: ("Spraying Pesticides/Fertilizers", "Monitoring"),
    ItemCategory.SPRAYERS: ("Spraying Pesticides/Fertilizers",),
    ItemCategory.DRIVERS: ("Transportation",),
    ItemCategory.BOREWELL: ("Irrigation",),
}

# machines that can be booked with a separately supplied operator
MACHINE_CATEGORIES = frozenset(
    {ItemCategory.TRACTORS, ItemCategory.HARVESTERS, ItemCategory.JCB, ItemCategory.BOREWELL}
)

OPERATOR_CATEGORY = ItemCategory.DRIVERS

QUANTITY_CATEGORIES = frozenset({ItemCategory.WORKERS})

DEFAULT_FREE_RADIUS_KM = 3.0
FREE_RADIUS_KM: dict[ItemCategory, float] = {
    ItemCategory.BOREWELL: 15.0,
    ItemCategory.HARVESTERS: 10.0,
}


def parse_category(value) -> ItemCategory | None:
    try:
        return ItemCategory(value)
    except ValueError:
        return None


def allows_purpose(category: ItemCategory, purpose: str) -> bool:
    return purpose in CATEGORY_WORK_PURPOSES.get(category, ())


def free_radius_km(category) -> float:
    cat = parse_category(category)
    return FREE_RADIUS_KM.get(cat, DEFAULT_FREE_RADIUS_KM)
