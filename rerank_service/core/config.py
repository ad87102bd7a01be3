# rerank_service/core/config.py
import logging
import sys
from typing import Dict, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator, ValidationInfo, ValidationError
import json
import torch

# Evaluated once at import so the Settings defaults below can depend on it.
IS_CUDA_AVAILABLE = torch.cuda.is_available()
_config_validator_logger = logging.getLogger("rerank_service.config.validator")


# --- Model Variants ---
# The ranking model is chosen once at startup from this fixed set.
MODEL_VARIANTS: Dict[str, str] = {
    "tiny": "cross-encoder/ms-marco-TinyBERT-L-2-v2",
    "mini4": "cross-encoder/ms-marco-MiniLM-L-4-v2",
    "mini6": "cross-encoder/ms-marco-MiniLM-L-6-v2",
    "mini12": "cross-encoder/ms-marco-MiniLM-L-12-v2",
}
MODEL_VARIANT_ALIASES: Dict[str, str] = {
    "mini": "mini12",
}

# --- Default Values ---
DEFAULT_MODEL_VARIANT = "tiny"
DEFAULT_MODEL_DEVICE = "cpu"
DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_PORT = 5971
DEFAULT_MAX_SEQ_LENGTH = 512

DEFAULT_BATCH_SIZE = 32
DEFAULT_GUNICORN_WORKERS = 1 if IS_CUDA_AVAILABLE else 2


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file='.env',
        env_prefix='RERANK_',
        env_file_encoding='utf-8',
        case_sensitive=False,
        extra='ignore'
    )

    PROJECT_NAME: str = "Rerank Service"
    API_V1_STR: str = "/v1"

    LOG_LEVEL: str = Field(default=DEFAULT_LOG_LEVEL)
    LOG_JSON: bool = Field(default=True)
    PORT: int = Field(default=DEFAULT_PORT)

    MODEL_VARIANT: str = Field(default=DEFAULT_MODEL_VARIANT)
    MODEL_DEVICE: str = Field(default=DEFAULT_MODEL_DEVICE)
    HF_CACHE_DIR: Optional[str] = Field(default=None)

    BATCH_SIZE: int = Field(default=DEFAULT_BATCH_SIZE, gt=0)
    MAX_SEQ_LENGTH: int = Field(default=DEFAULT_MAX_SEQ_LENGTH, gt=0)

    WORKERS: int = Field(default=DEFAULT_GUNICORN_WORKERS, gt=0)

    SERIALIZE_MODEL_CALLS: bool = Field(default=True)
    RANK_TIMEOUT_SECONDS: Optional[float] = Field(default=None, gt=0)

    @property
    def MODEL_NAME(self) -> str:
        return MODEL_VARIANTS[self.MODEL_VARIANT]

    @field_validator('LOG_LEVEL')
    @classmethod
    def check_log_level(cls, v: str) -> str:
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        normalized_v = v.upper()
        if normalized_v not in valid_levels:
            raise ValueError(f"Invalid LOG_LEVEL '{v}'. Must be one of {valid_levels}")
        return normalized_v

    @field_validator('MODEL_VARIANT')
    @classmethod
    def check_model_variant(cls, v: str) -> str:
        normalized_v = v.strip().lower()
        normalized_v = MODEL_VARIANT_ALIASES.get(normalized_v, normalized_v)
        if normalized_v not in MODEL_VARIANTS:
            valid_variants = sorted(set(MODEL_VARIANTS) | set(MODEL_VARIANT_ALIASES))
            raise ValueError(f"Invalid MODEL_VARIANT '{v}'. Must be one of {valid_variants}")
        return normalized_v

    @field_validator('MODEL_DEVICE')
    @classmethod
    def check_model_device(cls, v: str, info: ValidationInfo) -> str:
        normalized_v = v.lower()
        if normalized_v.startswith("cuda") and not IS_CUDA_AVAILABLE:
            _config_validator_logger.warning(
                "MODEL_DEVICE set to 'cuda' but CUDA is not available. Falling back to 'cpu'."
            )
            return "cpu"

        allowed_devices_prefixes = ["cpu", "cuda", "mps"]
        if not any(normalized_v.startswith(prefix) for prefix in allowed_devices_prefixes):
            _config_validator_logger.warning(
                f"MODEL_DEVICE '{v}' is unusual. Ensure it's a valid device string for PyTorch/sentence-transformers."
            )
        return normalized_v

    @field_validator('WORKERS')
    @classmethod
    def limit_gunicorn_workers_on_cuda(cls, v: int, info: ValidationInfo) -> int:
        model_device_val = info.data.get('MODEL_DEVICE', DEFAULT_MODEL_DEVICE)
        if model_device_val.startswith('cuda') and v > 1:
            _config_validator_logger.warning(
                f"RERANK_WORKERS (Gunicorn workers) was {v}, but MODEL_DEVICE is '{model_device_val}'. "
                "Forcing WORKERS=1 with GPU to prevent resource contention and potential CUDA errors."
            )
            return 1
        return v


# --- Global Settings Instance ---
_temp_log = logging.getLogger("rerank_service.config.loader")
if not _temp_log.handlers:
    _handler = logging.StreamHandler(sys.stdout)
    _formatter = logging.Formatter('%(levelname)s: [%(name)s] %(message)s')
    _handler.setFormatter(_formatter)
    _temp_log.addHandler(_handler)
    _temp_log.setLevel(logging.INFO)

try:
    _temp_log.info("Loading Rerank Service settings...")
    _temp_log.info(f"Initial Check: torch.cuda.is_available() = {IS_CUDA_AVAILABLE}")
    settings = Settings()
    _temp_log.info("Rerank Service Settings Loaded and Validated Successfully:")
    log_data = settings.model_dump()
    for key_name, value_setting in log_data.items():
        _temp_log.info(f"  {key_name.upper()}: {value_setting}")
    _temp_log.info(f"  MODEL_NAME: {settings.MODEL_NAME}")

except (ValidationError, ValueError) as e:
    error_details_str = ""
    if isinstance(e, ValidationError):
        try:
            error_details_str = f"\nValidation Errors:\n{json.dumps(e.errors(), indent=2, default=str)}"
        except Exception:
            error_details_str = f"\nRaw Errors: {e}"
    else:
        error_details_str = f"\nError: {e}"

    _temp_log.critical("!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!")
    _temp_log.critical(f"! FATAL: Rerank Service configuration validation failed!{error_details_str}")
    _temp_log.critical("! Check environment variables (prefixed with RERANK_) or .env file.")
    _temp_log.critical("!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!")
    sys.exit(1)
except Exception as e:
    _temp_log.critical(f"FATAL: Unexpected error loading Rerank Service settings: {e}", exc_info=True)
    sys.exit(1)
