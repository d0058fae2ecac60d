from shared.config import BaseClickHouseConfig, BaseLoggingConfig, BaseRedisConfig

DEFAULT_SURVEY_STEP_ORDER = [
    "work_values",
    "corporate_culture",
    "leadership",
    "workplace_environment",
    "humanity",
    "interpersonal_skills",
    "cognitive_abilities",
    "self_growth",
    "job_performance",
    "mental_strength",
]


class Settings(BaseLoggingConfig, BaseRedisConfig, BaseClickHouseConfig):
    # Display
    reference_timezone: str = "Asia/Tokyo"  # UTC+9, display only

    # Domain configuration
    survey_step_order: list[str] = DEFAULT_SURVEY_STEP_ORDER
    include_empty_steps: bool = False  # emit canonical steps with no events
    signup_methods: list[str] = ["email", "google"]
    recommendations_page: str = "recommendations"

    # Computation
    adapter_timeout_seconds: float = 10.0
    coalesce_refreshes: bool = True  # False -> ConcurrentRefreshError
    partial_query_filtering: bool = True  # filter partial queries by event kind

    # Redis snapshot mirror
    snapshot_hash_ttl_seconds: int = 86400
    snapshot_retention_count: int = 20

    otel_service_name: str = "funnel_analytics"


settings = Settings()
