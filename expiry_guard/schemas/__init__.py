from pydantic import ValidationError as PydanticValidationError

from expiry_guard.core.errors import ValidationError


def describe_validation_error(exc: PydanticValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()))
        message = error.get("msg", "invalid value")
        parts.append("{}: {}".format(location, message) if location else message)
    return "; ".join(parts)


def validate_payload(schema, **data):
    try:
        return schema.model_validate(data)
    except PydanticValidationError as exc:
        raise ValidationError(describe_validation_error(exc)) from exc


__all__ = ["describe_validation_error", "validate_payload"]
