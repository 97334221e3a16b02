"""Recurrence Validator."""
from datetime import datetime
from typing import Dict, Any, List, Optional
import re

from recurring_tasks.models.recurrence_rule import RepeatType

MAX_LINKS = 10
MAX_LINK_LENGTH = 2048


class RecurrenceValidator:
    """Validate recurrence settings of task payloads before they reach the engine."""

    @staticmethod
    def _result() -> Dict[str, Any]:
        return {
            "valid": True,
            "errors": [],
            "warnings": []
        }

    @staticmethod
    def validate_repeat_type(repeat_type: Optional[str]) -> Dict[str, Any]:
        """
        Validate a repeat type.

        Args:
            repeat_type: none, daily, weekly or monthly

        Returns:
            Dict with validation result
        """
        result = RecurrenceValidator._result()

        if repeat_type not in RepeatType.values():
            result["valid"] = False
            result["errors"].append("Repeat type must be one of: none, daily, weekly, monthly")

        return result

    @staticmethod
    def validate_task_with_recurrence(task_data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Validate a task that has recurrence settings.

        Args:
            task_data: Task data dictionary (repeat_type, due_date, parent_id)

        Returns:
            Dict with validation result
        """
        result = RecurrenceValidator._result()

        repeat_type = task_data.get("repeat_type") or RepeatType.NONE.value
        due_date = task_data.get("due_date")

        validation = RecurrenceValidator.validate_repeat_type(repeat_type)
        if not validation["valid"]:
            result["valid"] = False
            result["errors"].extend(validation["errors"])
            return result

        if repeat_type == RepeatType.NONE.value:
            return result

        if task_data.get("parent_id") is not None:
            result["valid"] = False
            result["errors"].append('Subtasks cannot have a repeat type other than "none"')
            return result

        # A repeating task without a due date has nothing to anchor its occurrences to
        if not isinstance(due_date, datetime):
            result["valid"] = False
            result["errors"].append("Due date is required for recurring tasks")
            return result

        if task_data.get("is_completed"):
            result["warnings"].append("Completed recurring task will still generate occurrences")

        return result

    @staticmethod
    def validate_links(links: Optional[List[str]]) -> Dict[str, Any]:
        """
        Validate link limits.

        Args:
            links: List of URLs

        Returns:
            Dict with validation result
        """
        result = RecurrenceValidator._result()

        if not links:
            return result

        if not isinstance(links, list):
            result["valid"] = False
            result["errors"].append("Links must be a list")
            return result

        if len(links) > MAX_LINKS:
            result["valid"] = False
            result["errors"].append(f"Maximum {MAX_LINKS} links allowed, got {len(links)}")
            return result

        for i, link in enumerate(links):
            if not isinstance(link, str):
                result["valid"] = False
                result["errors"].append(f"Link at index {i} must be a string")
                return result

            if len(link) > MAX_LINK_LENGTH:
                result["valid"] = False
                result["errors"].append(f"Link at index {i} exceeds maximum length of {MAX_LINK_LENGTH} characters")
                return result

            if not re.match(r'^https?://', link.strip(), re.IGNORECASE):
                result["warnings"].append(f"Link '{link}' is not an http(s) URL")

        return result

    @staticmethod
    def validate_priority(priority: str) -> Dict[str, Any]:
        """
        Validate priority value.

        Args:
            priority: Priority string

        Returns:
            Dict with validation result
        """
        result = RecurrenceValidator._result()

        if not priority:
            return result

        if priority not in ["high", "medium", "low"]:
            result["valid"] = False
            result["errors"].append(f"Priority must be one of: high, medium, low, got: {priority}")

        return result
