"""Application configuration settings."""
import os
import tempfile
from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import List


# Products whose DAG runs go through the authenticated Airflow middle layer
DEFAULT_MIDDLE_PRODUCTS = [
    "Relatório de Acompanhamento Hidrológico",
    "Modelo GEFS",
    "Resultados preliminares não consistidos  (vazões semanais - PMO)",
    "Relatório dos resultados finais consistidos da previsão diária (PDP)",
    "Preliminar - Relatório Mensal de Limites de Intercâmbio",
    "Relatório Mensal de Limites de Intercâmbio para o Modelo DECOMP",
    "Carga por patamar - DECOMP",
    "Deck NEWAVE Preliminar",
    "DECK NEWAVE DEFINITIVO",
    "Previsões de carga mensal e por patamar - NEWAVE",
    "Modelo ETA",
    "Modelo ECMWF",
    "IPDO (Informativo Preliminar Diário da Operação)",
    "Deck Preliminar DECOMP - Valor Esperado",
]


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    APP_NAME: str = "Sintegre Webhook Service"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False

    # Database
    # For local: postgresql+asyncpg://postgres:postgres@db:5432/sintegre
    DATABASE_URL: str = "postgresql+asyncpg://postgres:postgres@db:5432/sintegre"

    # File acquisition
    SCRATCH_DIR: str = os.path.join(tempfile.gettempdir(), "sintegre-webhooks")
    FETCH_TIMEOUT: int = 60

    # Retry policy
    MAX_RETRY_ATTEMPTS: int = 3
    RETRY_DELAY_SECONDS: int = 300

    # Blob storage
    AZURE_BLOB_CONNECTION_STRING: str = ""
    AZURE_STORAGE_ACCOUNT: str = "sintegrestorage"
    AZURE_STORAGE_KEY: str = ""
    AZURE_BLOB_CONTAINER: str = "sintegre-webhooks"
    SIGNED_URL_EXPIRES_SECONDS: int = 3600

    # Orchestrator (Airflow)
    AIRFLOW_URL: str = "http://mock_webhook:8001/api/v1"
    AIRFLOW_DAG_ID: str = "webhook-sintegre-basic"
    AIRFLOW_USER: str = "airflow"
    AIRFLOW_PASSWORD: str = "airflow"
    AIRFLOW_MIDDLE_URL: str = "http://mock_webhook:8001/middle/api/v1"
    AIRFLOW_MIDDLE_DAG_ID: str = "webhook-sintegre"
    AIRFLOW_AUTH_URL: str = "http://mock_webhook:8001/auth/token"
    AIRFLOW_MIDDLE_PRODUCTS: List[str] = DEFAULT_MIDDLE_PRODUCTS
    ORCHESTRATOR_TIMEOUT: int = 30

    class Config:
        env_file = ".env"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
