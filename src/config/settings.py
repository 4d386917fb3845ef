"""
Application Settings.

Centraliza toda configuração via .env / variáveis de ambiente:
pesos e limiares de risco, critérios das etapas, política de
timeout/retry e banco de dados.
"""

import logging
from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Configurações carregadas de variáveis de ambiente."""

    # --- App ---
    log_level: str = "INFO"

    # --- Database ---
    database_url: str = "sqlite:///verification.db"

    # --- Risk weights ---
    weight_document_authenticity: float = 0.35
    weight_data_consistency: float = 0.25
    weight_facial_match: float = 0.25
    weight_behavioral: float = 0.10
    weight_technical: float = 0.05

    # --- Risk level thresholds (limites superiores inclusivos) ---
    risk_threshold_low: float = 0.3
    risk_threshold_medium: float = 0.6
    risk_threshold_high: float = 0.8

    # --- Technical factor ---
    slow_facial_ms: float = 10_000
    slow_ocr_ms: float = 15_000
    min_average_confidence: float = 0.6

    # --- Step criteria ---
    authenticity_min_confidence: float = 0.7
    ocr_min_confidence: float = 0.7
    ocr_min_field_confidence: float = 0.5
    facial_min_confidence: float = 80.0
    face_quality_threshold: float = 0.6

    # --- Workflow (timeout / retry por etapa) ---
    step_retry_backoff_seconds: float = 0.5

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    def risk_weights(self) -> dict[str, float]:
        return {
            "DOCUMENT_AUTHENTICITY": self.weight_document_authenticity,
            "DATA_CONSISTENCY": self.weight_data_consistency,
            "FACIAL_MATCH": self.weight_facial_match,
            "BEHAVIORAL": self.weight_behavioral,
            "TECHNICAL": self.weight_technical,
        }


@lru_cache
def get_settings() -> Settings:
    """Singleton de settings."""
    return Settings()


def configure_logging(settings: Settings | None = None) -> None:
    """Aplica o nível de log configurado ao root logger."""
    settings = settings or get_settings()
    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    # basicConfig não altera um root logger que já tem handlers
    logging.getLogger().setLevel(level)
