
from typing import Literal, Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):

    data_path: str = "./data/directory.json"

    vector_store: Literal["memory", "chroma"] = "memory"
    chroma_host: str = "localhost"
    chroma_port: int = 8001
    chroma_collection: str = "directory"

    llm_base_url: str = "http://localhost:11434/v1"
    llm_model: str = "qwen2.5:7b"
    llm_api_key: str = "ollama"
    llm_max_tokens: int = 800
    llm_temperature: float = 0.1
    llm_timeout: float = 5.0

    embedding_model: str = "intfloat/multilingual-e5-base"
    embedding_query_prefix: str = "query: "
    embedding_passage_prefix: str = "passage: "
    embedding_batch_size: int = 50

    reranker_model: str = "BAAI/bge-reranker-v2-m3"

    # Search
    search_bm25_weight: float = 0.4
    search_vector_weight: float = 0.4
    search_filter_weight: float = 0.2
    search_vector_threshold: float = 0.3
    search_bm25_min_score: float = 0.1
    search_max_results: int = 20
    search_page_size: int = 20
    search_profile_share: float = 0.7
    search_enable_reranking: bool = True
    search_explicit_boost: bool = False
    search_rerank_skip: bool = False
    search_stage_timeout: float = 5.0
    search_rerank_timeout: float = 10.0
    search_filter_limit: int = 50
    browse_limit: int = 200

    # Background index updates
    updater_queue_size: int = 1000
    updater_max_attempts: int = 3
    updater_retry_delay: float = 1.0
    updater_refresh_interval: Optional[float] = None

    class Config:
        env_file = ".env"
        extra = "ignore"


settings = Settings()
