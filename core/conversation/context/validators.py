"""
Context validation utilities.

This module checks a built ConversationContext for consistency before the
rest of the turn relies on it.
"""

from typing import List

from core.conversation.context.manager import ConversationContext

VALID_RESPONSE_LENGTHS = {"short", "medium", "detailed"}
VALID_COMMUNICATION_STYLES = {"formal", "casual", "technical", "balanced"}
VALID_INFORMATION_DENSITIES = {"high", "medium", "low"}


class ValidationError:
    """Represents a context validation error"""

    def __init__(self, field: str, message: str, severity: str = "error"):
        self.field = field
        self.message = message
        self.severity = severity  # "error", "warning"

    def __repr__(self):
        return f"ValidationError({self.field}: {self.message})"


class ContextValidator:
    """Validates conversation context for consistency and completeness"""

    @classmethod
    def validate_context(cls, context: ConversationContext) -> List[ValidationError]:
        """
        Validate a conversation context.

        Args:
            context: Context to validate

        Returns:
            List of validation errors, empty when the context is consistent
        """
        errors = []
        errors.extend(cls._validate_basic_fields(context))
        errors.extend(cls._validate_flow_state(context))
        errors.extend(cls._validate_preferences(context))
        return errors

    @classmethod
    def has_errors(cls, errors: List[ValidationError]) -> bool:
        return any(e.severity == "error" for e in errors)

    @classmethod
    def _validate_basic_fields(cls, context: ConversationContext) -> List[ValidationError]:
        errors = []

        if not context.conversation_id:
            errors.append(ValidationError("conversation_id", "Conversation ID is required"))

        if context.turn_index < 0:
            errors.append(ValidationError("turn_index", "Turn index cannot be negative"))

        if not 0.0 <= context.urgency_level.score <= 1.0:
            errors.append(ValidationError("urgency_level", "Urgency score must be within [0, 1]"))

        if not 0.0 <= context.intent_confidence <= 1.0:
            errors.append(ValidationError("intent_confidence", "Intent confidence must be within [0, 1]"))

        return errors

    @classmethod
    def _validate_flow_state(cls, context: ConversationContext) -> List[ValidationError]:
        errors = []
        if context.active_flow and not context.current_flow_step:
            errors.append(ValidationError(
                "current_flow_step",
                f"Flow {context.active_flow} is active without a current step"
            ))
        if context.current_flow_step and not context.active_flow:
            errors.append(ValidationError(
                "active_flow",
                "Flow step set without an active flow",
                severity="warning"
            ))
        return errors

    @classmethod
    def _validate_preferences(cls, context: ConversationContext) -> List[ValidationError]:
        """Unknown preference values are warnings; optimizers fall back to defaults"""
        errors = []
        preferences = context.user_profile.preferences

        checks = [
            ("response_length", VALID_RESPONSE_LENGTHS),
            ("communication_style", VALID_COMMUNICATION_STYLES),
            ("information_density", VALID_INFORMATION_DENSITIES),
        ]
        for key, allowed in checks:
            value = preferences.get(key)
            if value is not None and value not in allowed:
                errors.append(ValidationError(key, f"Unknown {key} preference: {value}", severity="warning"))

        max_suggestions = preferences.get("max_suggestions")
        if max_suggestions is not None and (not isinstance(max_suggestions, int) or max_suggestions < 1):
            errors.append(ValidationError(
                "max_suggestions", "max_suggestions must be a positive integer", severity="warning"
            ))

        return errors
