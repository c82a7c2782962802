"""Error kinds surfaced by the meal generation and shopping list workflows.

Every error carries the HTTP status it maps to so the API layer can turn it
into a ``{"error": message}`` payload without inspecting the type.
"""

from __future__ import annotations

from fastapi import status


class MealPlannerError(Exception):
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message: str = "Internal server error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class NotFoundError(MealPlannerError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found"


class InvalidRequestError(MealPlannerError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid request"


class InvalidIngredientError(MealPlannerError):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    default_message = "Invalid ingredient data"


class StorageError(MealPlannerError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Storage operation failed"


class ServiceNotConfiguredError(MealPlannerError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_message = "OpenAI not configured"


class UpstreamServiceError(MealPlannerError):
    status_code = status.HTTP_502_BAD_GATEWAY
    default_message = "Meal generation service call failed"


class MalformedResponseError(MealPlannerError):
    status_code = status.HTTP_502_BAD_GATEWAY
    default_message = "Invalid response format from AI service"


class GenerationTimeoutError(MealPlannerError):
    status_code = status.HTTP_504_GATEWAY_TIMEOUT
    default_message = "Timed out while waiting for the meal generation model. Please retry."
