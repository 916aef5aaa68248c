"""
Application exceptions.

Hierarchy:
- GroundControlError
    - NotFoundError (404)
        - FlagNotFoundError
        - RuleNotFoundError
    - ValidationError (400)
    - ConflictError (409)
    - ConfigurationError (500)
        - EvaluatorNotFoundError

HTTP mapping lives in groundcontrol/api/errors.py; services raise these
and never import FastAPI.
"""


class GroundControlError(Exception):
    """Base class for all application errors."""

    status_code: int = 500
    error: str = "Internal Server Error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(GroundControlError):
    """A requested resource does not exist."""

    status_code = 404
    error = "Not Found"


class FlagNotFoundError(NotFoundError):
    def __init__(self, code: str):
        super().__init__(f"Feature flag with code '{code}' not found")
        self.code = code


class RuleNotFoundError(NotFoundError):
    def __init__(self, rule_id: object):
        super().__init__(f"Rollout rule with id '{rule_id}' not found")
        self.rule_id = rule_id


class ValidationError(GroundControlError):
    """Request is well-formed but violates a domain rule."""

    status_code = 400
    error = "Bad Request"


class ConflictError(GroundControlError):
    """Write would violate a uniqueness constraint."""

    status_code = 409
    error = "Conflict"


class ConfigurationError(GroundControlError):
    """
    The system is misconfigured.

    Never degraded to a default value: these indicate a deployment bug
    and must surface to the caller.
    """


class EvaluatorNotFoundError(ConfigurationError):
    """No condition evaluator handles an (operator, data type) pair."""

    def __init__(self, operator: object, data_type: object):
        op = getattr(operator, "value", operator)
        dt = getattr(data_type, "value", data_type)
        super().__init__(
            f"No evaluator found for operator {op} with data type {dt}"
        )
        self.operator = operator
        self.data_type = data_type


class UnsupportedOperatorError(ValueError):
    """An evaluator was called with an operator it does not handle."""

    def __init__(self, evaluator: str, operator: object):
        op = getattr(operator, "value", operator)
        super().__init__(f"Unsupported operator for {evaluator} evaluation: {op}")
        self.operator = operator
