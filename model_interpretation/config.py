import os


class Settings:
    PROJECT_NAME: str = "Model Interpretation API"
    PROJECT_VERSION: str = "0.1.0"

    # Pickled model artifact served by the API (see services.artifacts)
    MODEL_PATH: str = os.getenv("MODEL_PATH", os.path.join("model", "model.pkl"))

    # Analysis defaults
    DEFAULT_SEED: int = int(os.getenv("DEFAULT_SEED", "42"))
    DEFAULT_GRID_RESOLUTION: int = int(os.getenv("DEFAULT_GRID_RESOLUTION", "20"))
    DEFAULT_REPEATS: int = int(os.getenv("DEFAULT_REPEATS", "5"))
    INTERACTION_SAMPLE_SIZE: int = int(os.getenv("INTERACTION_SAMPLE_SIZE", "200"))

    # Upper bound on rows sent to a single predict call
    MAX_BATCH_ROWS: int = int(os.getenv("MAX_BATCH_ROWS", "200000"))

    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

settings = Settings()
