from uuid import UUID

from proposals_feed.exceptions import InputValidationError


def validate_group_id(group_id: str) -> str:
    """Reject anything that is not a canonical UUID."""
    try:
        parsed = UUID(str(group_id))
    except (ValueError, AttributeError, TypeError):
        raise InputValidationError(f"Invalid group id '{group_id}': expected a UUID")
    if str(parsed) != str(group_id).lower():
        raise InputValidationError(f"Invalid group id '{group_id}': expected a UUID")
    return str(group_id)


def validate_topic_external_id(external_id: str) -> int:
    """Discourse topic ids are positive integers, possibly passed as strings."""
    text = str(external_id).strip()
    if not text.isdigit():
        raise InputValidationError(f"Invalid topic external id '{external_id}': expected a number")
    return int(text)


def validate_aggregation_level(level: int) -> int:
    if isinstance(level, bool) or not isinstance(level, int) or level < 0:
        raise InputValidationError(f"Invalid aggregation level '{level}': expected an integer >= 0")
    return level
