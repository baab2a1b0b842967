"""
Input and output validators for the conversation pipeline.

Validators return (is_valid, errors) tuples instead of raising, so callers
decide how a failure surfaces.
"""

import re
from typing import Dict, Any, List, Optional, Tuple

from config import settings

MAX_QUICK_REPLIES = 4
MAX_SMART_SUGGESTIONS = 3


class InputValidator:
    """Validates and cleans inbound chat requests"""

    MIN_MESSAGE_LENGTH = 1

    # Alphanumeric plus hyphens/underscores
    CONVERSATION_ID_PATTERN = re.compile(r'^[a-zA-Z0-9_-]+$')
    MAX_ID_LENGTH = 128

    HARMFUL_PATTERNS = [
        r'<\s*script',
        r'javascript\s*:',
        r'data:text/html',
        r'\x00',
    ]

    CONTROL_CHARS = re.compile(r'[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]')

    @classmethod
    def max_message_length(cls) -> int:
        return settings.MAX_MESSAGE_LENGTH

    @classmethod
    def validate_message(cls, message: Any) -> Tuple[bool, Optional[str]]:
        """
        Validate user message.

        Args:
            message: Message to validate

        Returns:
            Tuple of (is_valid, error_message)
        """
        if not isinstance(message, str):
            return False, "Message must be a string"

        if len(message.strip()) < cls.MIN_MESSAGE_LENGTH:
            return False, "Message cannot be empty"

        if len(message) > cls.max_message_length():
            return False, f"Message too long (max {cls.max_message_length()} characters)"

        lowered = message.lower()
        if any(re.search(pattern, lowered) for pattern in cls.HARMFUL_PATTERNS):
            return False, "Message contains invalid content"

        return True, None

    @classmethod
    def validate_conversation_id(cls, conversation_id: Any) -> Tuple[bool, Optional[str]]:
        if not isinstance(conversation_id, str):
            return False, "Conversation ID must be a string"

        if not conversation_id:
            return False, "Conversation ID cannot be empty"

        if len(conversation_id) > cls.MAX_ID_LENGTH:
            return False, f"Conversation ID too long (max {cls.MAX_ID_LENGTH} characters)"

        if not cls.CONVERSATION_ID_PATTERN.match(conversation_id):
            return False, "Conversation ID contains invalid characters"

        return True, None

    @classmethod
    def validate_user_id(cls, user_id: Any) -> Tuple[bool, Optional[str]]:
        if user_id is None:
            return True, None  # optional

        if not isinstance(user_id, str):
            return False, "User ID must be a string"

        if len(user_id) > cls.MAX_ID_LENGTH:
            return False, f"User ID too long (max {cls.MAX_ID_LENGTH} characters)"

        return True, None

    @classmethod
    def validate_request(cls, data: Dict[str, Any]) -> Tuple[bool, List[str]]:
        """
        Validate complete request data.

        Args:
            data: Request data with message, conversation_id and optional user_id

        Returns:
            Tuple of (is_valid, list_of_errors)
        """
        errors = []
        checks = [
            ("Message", cls.validate_message(data.get("message"))),
            ("Conversation ID", cls.validate_conversation_id(data.get("conversation_id"))),
            ("User ID", cls.validate_user_id(data.get("user_id"))),
        ]
        for label, (is_valid, error) in checks:
            if not is_valid:
                errors.append(f"{label}: {error}")

        return len(errors) == 0, errors

    @classmethod
    def sanitize_message(cls, message: str) -> str:
        """Drop control characters and collapse surrounding whitespace"""
        return cls.CONTROL_CHARS.sub("", message).strip()


class OutputValidator:
    """Checks a serialized turn result against the response contract"""

    REQUIRED_FIELDS = ["success", "response", "confidence", "topics", "suggestedActions", "metadata"]

    @classmethod
    def validate_turn_result(cls, result: Dict[str, Any]) -> Tuple[bool, List[str]]:
        errors = [f"Missing required field: {name}" for name in cls.REQUIRED_FIELDS if name not in result]

        if "success" in result and not isinstance(result["success"], bool):
            errors.append("Success must be a boolean")

        response = result.get("response")
        if "response" in result and (not isinstance(response, str) or not response):
            errors.append("Response must be a non-empty string")

        confidence = result.get("confidence")
        if "confidence" in result:
            if not isinstance(confidence, (int, float)):
                errors.append("Confidence must be a number")
            elif not 0 <= confidence <= 1:
                errors.append("Confidence must be between 0 and 1")

        if len(result.get("quickReplies") or []) > MAX_QUICK_REPLIES:
            errors.append(f"At most {MAX_QUICK_REPLIES} quick replies allowed")

        if len(result.get("smartSuggestions") or []) > MAX_SMART_SUGGESTIONS:
            errors.append(f"At most {MAX_SMART_SUGGESTIONS} smart suggestions allowed")

        return len(errors) == 0, errors
