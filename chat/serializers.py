from rest_framework import serializers
from rest_framework.fields import empty
from rest_framework.settings import api_settings

ROLES = ["system", "user", "assistant"]

MESSAGES_REQUIRED = "The request must include an array of messages."


class LenientTextField(serializers.Field):
    """Accepts any value and hands back a string; absent or null becomes ""."""

    def validate_empty_values(self, data):
        if data is empty or data is None:
            return True, ""
        return False, data

    def to_internal_value(self, data):
        if isinstance(data, str):
            return data
        return str(data)

    def to_representation(self, value):
        return value


class OptionalModelField(serializers.Field):
    """Model identifier override; anything but a non-empty string means "use the default"."""

    def validate_empty_values(self, data):
        if data is empty or data is None:
            return True, None
        return False, data

    def to_internal_value(self, data):
        if isinstance(data, str) and data.strip():
            return data.strip()
        return None

    def to_representation(self, value):
        return value


class OptionalNumberField(serializers.Field):
    """Passes numbers through untouched and drops everything else; clamping happens in the view."""

    def validate_empty_values(self, data):
        if data is empty or data is None:
            return True, None
        return False, data

    def to_internal_value(self, data):
        if isinstance(data, bool) or not isinstance(data, (int, float)):
            return None
        return data

    def to_representation(self, value):
        return value


class ChatTurnSerializer(serializers.Serializer):
    role = serializers.ChoiceField(choices=ROLES)
    content = LenientTextField(required=False)


class ChatRequestSerializer(serializers.Serializer):
    messages = ChatTurnSerializer(
        many=True,
        allow_empty=False,
        error_messages={
            "required": MESSAGES_REQUIRED,
            "null": MESSAGES_REQUIRED,
            "not_a_list": MESSAGES_REQUIRED,
            "empty": MESSAGES_REQUIRED,
        },
    )
    model = OptionalModelField(required=False)
    temperature = OptionalNumberField(required=False)


def describe_errors(detail, path="") -> str:
    """Flatten DRF's nested error structure into the first readable message."""
    if isinstance(detail, dict):
        for key, value in detail.items():
            if key == api_settings.NON_FIELD_ERRORS_KEY:
                sub = path
            elif isinstance(key, int):
                # DRF 3.15+ keys list item errors by index
                sub = f"{path}[{key}]"
            else:
                sub = f"{path}.{key}" if path else key
            text = describe_errors(value, sub)
            if text:
                return text
        return ""
    if isinstance(detail, list):
        for index, item in enumerate(detail):
            if isinstance(item, (dict, list)):
                text = describe_errors(item, f"{path}[{index}]")
                if text:
                    return text
                continue
            # top-level field messages already read as sentences
            if "." in path or "[" in path:
                return f"{path}: {item}"
            return str(item)
        return ""
    return str(detail)
