"""
Canonical meal slot handling.

Plans store each meal either as a bare boolean or as
``{"enabled": bool, "deliveryTime": str}``. Everything downstream works on
``MealSlot`` instead of checking which shape it got.
"""
from dataclasses import dataclass

MEAL_TYPES = ('breakfast', 'lunch', 'dinner')

STANDARD = 'standard'

DELIVERY_TIME_OPTIONS = {
    'breakfast': {
        'standard': {'label': 'Standard', 'time': '7:00-9:00 AM'},
        'early-morning': {'label': 'Early Morning', 'time': '5:00-6:00 AM'},
    },
    'lunch': {
        'standard': {'label': 'Standard', 'time': '11:00 AM-1:00 PM'},
        'early-morning': {'label': 'Early Morning', 'time': '7:00-9:00 AM'},
        'late-afternoon': {'label': 'Late Afternoon', 'time': '3:00-5:00 PM'},
    },
    'dinner': {
        'standard': {'label': 'Standard', 'time': '6:00-8:00 PM'},
        'late-night': {'label': 'Late Night', 'time': '9:00-11:00 PM'},
    },
}


@dataclass(frozen=True)
class MealSlot:
    enabled: bool = False
    delivery_time: str = STANDARD

    def as_dict(self):
        return {'enabled': self.enabled, 'deliveryTime': self.delivery_time}


def normalize_meal(value):
    """Coerce a stored meal value (bool, dict or None) to a ``MealSlot``."""
    if isinstance(value, MealSlot):
        return value
    if isinstance(value, dict):
        delivery_time = value.get('deliveryTime') or value.get('delivery_time') or STANDARD
        return MealSlot(enabled=bool(value.get('enabled')), delivery_time=delivery_time)
    return MealSlot(enabled=bool(value))


def normalize_meals(meals):
    """Canonical slots for all meal types; missing types are disabled."""
    meals = meals or {}
    return {meal_type: normalize_meal(meals.get(meal_type)) for meal_type in MEAL_TYPES}


def validate_meals(meals):
    """
    Check a raw meals mapping and return its canonical form.

    Raises ValueError for unknown meal types or delivery times that are not
    offered for the meal.
    """
    meals = meals or {}
    unknown = set(meals) - set(MEAL_TYPES)
    if unknown:
        raise ValueError(f"Unknown meal type(s): {', '.join(sorted(unknown))}")

    slots = normalize_meals(meals)
    for meal_type, slot in slots.items():
        if slot.delivery_time not in DELIVERY_TIME_OPTIONS[meal_type]:
            raise ValueError(f'Invalid delivery time "{slot.delivery_time}" for {meal_type}')
    return slots


def apply_overrides(plan_slots, overrides):
    """
    Merge per-subscription on/off overrides onto a plan's slots.

    An override of ``None`` (or a missing key) keeps the plan default; the
    delivery time always comes from the plan.
    """
    overrides = overrides or {}
    merged = {}
    for meal_type, slot in plan_slots.items():
        override = overrides.get(meal_type)
        if override is None:
            merged[meal_type] = slot
        else:
            merged[meal_type] = MealSlot(enabled=bool(override), delivery_time=slot.delivery_time)
    return merged


def delivery_time_options(meal_type=None):
    """Offered delivery slots, for one meal type or all of them."""
    if meal_type:
        if meal_type not in DELIVERY_TIME_OPTIONS:
            raise ValueError(f'Invalid meal type: {meal_type}')
        return [
            {'value': key, **option}
            for key, option in DELIVERY_TIME_OPTIONS[meal_type].items()
        ]
    return {meal_type: delivery_time_options(meal_type) for meal_type in MEAL_TYPES}


def describe_delivery_time(meal_type, delivery_time):
    option = DELIVERY_TIME_OPTIONS.get(meal_type, {}).get(delivery_time)
    if not option:
        return delivery_time
    return f"{option['label']} ({option['time']})"
