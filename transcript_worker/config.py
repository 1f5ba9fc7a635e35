import os

from dotenv import load_dotenv


def _get_bool_env(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    return raw.strip().lower() == "true"


def _get_number_env(name: str, default, cast=int):
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return cast(raw)
    except ValueError:
        raise ValueError(
            f"Invalid value for {name}: '{raw}' is not a valid {cast.__name__}"
        )


class Config:
    def __init__(self, env_file=None):
        """
        Initialize process-level settings from the environment.

        Loads environment variables from the provided .env file path when `env_file` is given; otherwise
        loads from the default .env discovery. Sets database, Taddy, Deepgram and transcript storage
        attributes using environment values with sensible defaults.

        Parameters:
            env_file (str | None): Optional path to a .env file to load environment variables from.

        Raises:
            ValueError: If a numeric setting cannot be parsed or the storage backend is unknown.
        """
        if env_file:
            load_dotenv(env_file)
        else:
            load_dotenv()

        # Database configuration
        self.DATABASE_URL = os.getenv(
            "DATABASE_URL", "sqlite:///./transcript_worker.db"
        )
        self.DB_POOL_SIZE = _get_number_env("DB_POOL_SIZE", 5)
        self.DB_MAX_OVERFLOW = _get_number_env("DB_MAX_OVERFLOW", 10)
        self.DB_ECHO = _get_bool_env("DB_ECHO", False)
        # Run locks on non-PostgreSQL databases expire after this many seconds
        self.DB_LOCK_TTL_SECONDS = _get_number_env("DB_LOCK_TTL_SECONDS", 6 * 60 * 60)

        # Taddy transcript provider
        self.TADDY_API_KEY = os.getenv("TADDY_API_KEY", "")
        self.TADDY_USER_ID = os.getenv("TADDY_USER_ID", "")
        self.TADDY_ENDPOINT = os.getenv(
            "TADDY_ENDPOINT", "https://api.taddy.org/graphql"
        )
        self.TADDY_TIMEOUT_SECONDS = _get_number_env(
            "TADDY_TIMEOUT_SECONDS", 30.0, cast=float
        )

        # Deepgram fallback transcription
        self.DEEPGRAM_API_KEY = os.getenv("DEEPGRAM_API_KEY", "")
        self.DEEPGRAM_ENDPOINT = os.getenv(
            "DEEPGRAM_ENDPOINT", "https://api.deepgram.com/v1/listen"
        )

        # Transcript storage (s3 for R2/S3 buckets, local for development)
        self.TRANSCRIPT_STORAGE_BACKEND = os.getenv(
            "TRANSCRIPT_STORAGE_BACKEND", "local"
        ).lower()
        if self.TRANSCRIPT_STORAGE_BACKEND not in ("s3", "local"):
            raise ValueError(
                f"TRANSCRIPT_STORAGE_BACKEND must be 's3' or 'local', "
                f"got: {self.TRANSCRIPT_STORAGE_BACKEND}"
            )
        self.TRANSCRIPT_BUCKET = os.getenv("TRANSCRIPT_BUCKET", "transcripts")
        self.TRANSCRIPT_LOCAL_DIRECTORY = os.getenv(
            "TRANSCRIPT_LOCAL_DIRECTORY", "./transcripts"
        )
        self.S3_ENDPOINT_URL = os.getenv("S3_ENDPOINT_URL", "") or None
        self.AWS_ACCESS_KEY_ID = os.getenv("AWS_ACCESS_KEY_ID", "")
        self.AWS_SECRET_ACCESS_KEY = os.getenv("AWS_SECRET_ACCESS_KEY", "")
        self.S3_REGION_NAME = os.getenv("S3_REGION_NAME", "auto")

    def has_taddy_credentials(self) -> bool:
        '''Check whether both Taddy headers can be sent.'''
        return bool(self.TADDY_API_KEY and self.TADDY_USER_ID)

    def has_s3_credentials(self) -> bool:
        '''Check whether the S3/R2 client can be created.'''
        return bool(self.AWS_ACCESS_KEY_ID and self.AWS_SECRET_ACCESS_KEY)
