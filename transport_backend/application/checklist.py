"""
Pre-trip checklist taxonomy. Configuration data: category -> questions, required flag.
"""

from transport_backend.domain.models import ChecklistItem

CHECKLIST_CATEGORIES: dict[str, list[tuple[str, str, bool]]] = {
    "Engine & Fluids": [
        ("engine_oil", "Engine oil level", True),
        ("coolant", "Radiator water/coolant level", True),
        ("brake_fluid", "Brake fluid level", True),
        ("power_steering", "Power steering fluid", False),
        ("washer_fluid", "Windshield washer fluid", False),
    ],
    "Tires & Brakes": [
        ("tire_condition", "Tire condition (tread depth, no visible damage)", True),
        ("tire_pressure", "All tires properly inflated", True),
        ("brake_pads", "Brake pads condition", True),
        ("spare_tire", "Spare tire available and inflated", True),
    ],
    "Safety Equipment": [
        ("fire_extinguisher", "Fire extinguisher (present & not expired)", True),
        ("warning_triangle", "Warning triangle present", True),
        ("first_aid", "First aid kit available", False),
        ("jack_spanner", "Jack and wheel spanner present", True),
    ],
    "Lights & Signals": [
        ("headlights", "Headlights working", True),
        ("tail_lights", "Tail lights working", True),
        ("brake_lights", "Brake lights working", True),
        ("turn_signals", "Turn signals working", True),
        ("hazard_lights", "Hazard lights working", True),
    ],
    "Visibility & Controls": [
        ("side_mirrors", "Side mirrors intact and adjustable", True),
        ("rear_mirror", "Rear-view mirror intact", True),
        ("windshield", "Windshield (no cracks or damage)", True),
        ("wipers", "Windshield wipers functional", True),
        ("horn", "Horn working properly", True),
    ],
    "Documents & Compliance": [
        ("registration", "Vehicle registration (valid & present)", True),
        ("insurance", "Insurance certificate (valid)", True),
        ("license", "Driver's license (valid)", True),
        ("inspection_cert", "Vehicle inspection certificate", False),
    ],
    "Structural Integrity": [
        ("chassis", "Chassis condition (no visible damage)", True),
        ("suspension", "Suspension (no unusual sounds or sag)", True),
        ("doors", "All doors close and lock properly", True),
        ("cargo_area", "Cargo area secure and clean", False),
    ],
}


def load_checklist() -> list[ChecklistItem]:
    """Flattened checklist in category order."""
    return [
        ChecklistItem(item_id=item_id, category=category, question=question, required=required)
        for category, items in CHECKLIST_CATEGORIES.items()
        for item_id, question, required in items
    ]


DEFAULT_CHECKLIST = load_checklist()
