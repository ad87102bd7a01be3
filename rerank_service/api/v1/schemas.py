# rerank_service/api/v1/schemas.py
from pydantic import BaseModel, ConfigDict, Field
from typing import Optional

# Domain models double as the wire format; the API layer only adds docs.
from rerank_service.domain.models import RankRequest, RankResponse


class RerankRequest(RankRequest):
    model_config = ConfigDict(
        json_schema_extra={
            "examples": [
                {
                    "model": "rerank-english-v3.0",
                    "query": "capital of France",
                    "documents": [
                        "Paris is the capital of France.",
                        {"title": "Germany", "text": "Berlin is in Germany."}
                    ],
                    "top_n": 1,
                    "rank_fields": None,
                    "return_documents": True
                }
            ]
        }
    )


class RerankResponse(RankResponse):
    """
    Cohere-compatible rerank response: id, ranked results and meta block.
    """


class ErrorResponse(BaseModel):
    error: str = Field(..., description="Short summary of the failure class.")
    message: str = Field(..., description="Details about what went wrong.")
    type: str = Field(..., description="Name of the error kind (e.g. 'MalformedRequest', 'ScoringFailure').")


class HealthCheckResponse(BaseModel):
    """
    Response model for the health check endpoint.
    """
    model_config = ConfigDict(protected_namespaces=())

    status: str = Field(..., description="Overall status of the service (e.g., 'ok', 'error').")
    service: str = Field(..., description="Name of the service.")
    model_status: str = Field(..., description="Status of the ranking model (e.g., 'loaded', 'loading', 'error', 'unloaded').")
    model_name: Optional[str] = Field(None, description="Name of the ranking model if loaded or configured.")
    message: Optional[str] = Field(None, description="Additional details, especially in case of error.")
