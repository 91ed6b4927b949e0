"""
Configuration management using Pydantic BaseSettings.
All values can be overridden via environment variables or a .env file.
"""
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # ── Directory Service (auth + profiles) ───────────────────────────────
    directory_service_url: str = "http://directory-service:8080"

    # ── Feed Service (post storage) ───────────────────────────────────────
    feed_service_url: str = "http://feed-service:8080"
    http_timeout: float = 5.0

    # ── Push channel (Kafka) ───────────────────────────────────────────────
    kafka_bootstrap_servers: str = "kafka:9092"
    kafka_topic_post_insertions: str = "post-insertions"

    # ── Feed ───────────────────────────────────────────────────────────────
    feed_page_size: int = 20             # posts fetched by the initial load
    max_post_length: int = 280           # code points, after trimming

    # ── Observability ──────────────────────────────────────────────────────
    otel_enabled: bool = True
    otel_exporter_otlp_endpoint: str = "http://jaeger:4317"
    service_name: str = "feedsync"
    environment: str = "development"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
