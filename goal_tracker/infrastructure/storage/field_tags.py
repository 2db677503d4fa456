"""
Stable numeric field tags for locally persisted goals

Tags are the on-disk identity of a field. A new field gets the next free tag;
existing tags are never renumbered or reused, otherwise previously stored
records decode into the wrong fields.
"""
from goal_tracker.domain.goal import GoalCategory, GoalType

# Type ids of the tagged envelopes
GOAL_TYPE_ID = 4
MILESTONE_TYPE_ID = 5
GOAL_CATEGORY_TYPE_ID = 13
GOAL_TYPE_TYPE_ID = 14

# tag -> Goal attribute
GOAL_FIELD_TAGS: dict[int, str] = {
    0: "id",
    1: "user_id",
    2: "title",
    3: "description",
    4: "target_amount",
    5: "current_amount",
    6: "start_date",
    7: "target_date",
    8: "category",
    9: "goal_type",
    10: "is_completed",
    11: "is_active",
    12: "created_at",
    13: "updated_at",
    14: "image_url",
    15: "metadata",
    16: "milestones",
    17: "monthly_contribution",
    18: "currency",
    19: "priority",
}

# tag -> GoalMilestone attribute
MILESTONE_FIELD_TAGS: dict[int, str] = {
    0: "id",
    1: "title",
    2: "description",
    3: "target_amount",
    4: "target_date",
    5: "is_completed",
    6: "completed_at",
    7: "created_at",
}

GOAL_REQUIRED_TAGS = frozenset({0, 1, 2, 3, 4, 6, 7, 12, 13})
MILESTONE_REQUIRED_TAGS = frozenset({0, 1, 2, 3, 4, 7})

# Enum variant tags, in declaration order
GOAL_CATEGORY_TAGS: dict[int, GoalCategory] = {
    0: GoalCategory.EMERGENCY,
    1: GoalCategory.TRAVEL,
    2: GoalCategory.HOUSE,
    3: GoalCategory.CAR,
    4: GoalCategory.EDUCATION,
    5: GoalCategory.INVESTMENT,
    6: GoalCategory.RETIREMENT,
    7: GoalCategory.WEDDING,
    8: GoalCategory.HEALTH,
    9: GoalCategory.BUSINESS,
    10: GoalCategory.GADGETS,
    11: GoalCategory.VACATION,
    12: GoalCategory.OTHER,
}

GOAL_TYPE_TAGS: dict[int, GoalType] = {
    0: GoalType.SAVINGS,
    1: GoalType.DEBT_PAYOFF,
    2: GoalType.INVESTMENT,
    3: GoalType.PURCHASE,
    4: GoalType.EMERGENCY,
}


def tag_of(tags: dict[int, str], name: str) -> int:
    """Обратный поиск: имя атрибута -> тег"""
    for tag, attr in tags.items():
        if attr == name:
            return tag
    raise KeyError(name)


def enum_tag(tags: dict, member) -> int:
    for tag, value in tags.items():
        if value is member:
            return tag
    raise KeyError(member)
