"""
Configuration settings for the Meeting Recorder.
Uses Pydantic Settings for type-safe configuration with environment variable
and .env file support. Settings are loaded once at process start and turned
into an immutable SessionConfig for the run.
"""

from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from meeting_recorder.core.exceptions import ConfigurationError
from meeting_recorder.models import CaptureSource, SessionConfig


class ZoomSettings(BaseSettings):
    """Zoom meeting and web join flow configuration."""
    model_config = SettingsConfigDict(env_prefix="ZOOM_", env_file=".env", extra="ignore")

    meeting_id: str = Field(default="", description="Zoom meeting number")
    meeting_password: str = Field(default="", description="Meeting passcode")
    meeting_url: str = Field(default="", description="Web client join URL")

    join_timeout_seconds: float = Field(default=30.0, gt=0, description="Max wait for the join form")
    navigation_timeout_seconds: float = Field(default=60.0, gt=0, description="Max wait after submitting")
    headless: bool = Field(default=False, description="Run Chromium headless")
    debug_screenshot_path: Optional[str] = Field(
        default="zoom_debug.png",
        description="Where to save the join form screenshot (empty to disable)"
    )


class RecordingSettings(BaseSettings):
    """Screen and audio capture configuration."""
    model_config = SettingsConfigDict(env_prefix="RECORDING_", env_file=".env", extra="ignore")

    path: str = Field(default="recordings", description="Local recordings directory")
    duration_minutes: float = Field(default=60.0, gt=0, description="How long to record")
    container: str = Field(default="mp4", description="Output file extension")

    # Encoder process
    ffmpeg_binary: str = Field(default="ffmpeg", description="ffmpeg executable")
    display: str = Field(default=":0.0", description="X11 display to grab")
    video_size: str = Field(default="1366x768", description="Grabbed screen region")
    audio_input: str = Field(default="default", description="PulseAudio source")
    video_codec: str = Field(default="libx264", description="Video codec")
    preset: str = Field(default="ultrafast", description="Encoder preset")
    crf: int = Field(default=25, ge=0, le=51, description="Constant rate factor")
    audio_codec: str = Field(default="aac", description="Audio codec")

    startup_grace_seconds: float = Field(default=1.0, ge=0, description="Wait before checking the encoder is alive")
    stop_timeout_seconds: float = Field(default=10.0, gt=0, description="Max wait for a graceful encoder exit")

    @property
    def source(self) -> CaptureSource:
        return CaptureSource(
            display=self.display,
            video_size=self.video_size,
            audio_input=self.audio_input,
        )


class AwsSettings(BaseSettings):
    """S3 archive configuration."""
    model_config = SettingsConfigDict(env_prefix="AWS_", env_file=".env", extra="ignore")

    access_key_id: Optional[str] = Field(default=None, description="AWS access key id")
    secret_access_key: Optional[str] = Field(default=None, description="AWS secret access key")
    region: str = Field(default="us-east-1", description="AWS region")
    s3_bucket_name: str = Field(default="", description="Bucket that receives recordings")

    upload_max_attempts: int = Field(default=3, ge=1, description="Attempts for transient failures")
    upload_backoff_seconds: float = Field(default=2.0, ge=0, description="Initial retry backoff")


class ControlServerSettings(BaseSettings):
    """Local control API (status and abort)."""
    model_config = SettingsConfigDict(env_prefix="CONTROL_", env_file=".env", extra="ignore")

    enabled: bool = Field(default=False, description="Serve the control API during the run")
    host: str = Field(default="127.0.0.1", description="Bind address")
    port: int = Field(default=8765, description="Bind port")


class Settings(BaseSettings):
    """Main application settings."""
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Nested settings
    zoom: ZoomSettings = Field(default_factory=ZoomSettings)
    recording: RecordingSettings = Field(default_factory=RecordingSettings)
    aws: AwsSettings = Field(default_factory=AwsSettings)
    control: ControlServerSettings = Field(default_factory=ControlServerSettings)

    # Application settings
    log_level: str = Field(default="INFO", description="Logging level")
    log_dir: str = Field(default="logs", description="Log file directory")
    enable_file_logging: bool = Field(default=True, description="Write a rotating log file")
    write_summary: bool = Field(default=True, description="Write the run summary JSON next to the recording")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Invalid log level: {v}")
        return v.upper()

    @property
    def recordings_dir(self) -> Path:
        """Get recordings directory path."""
        return Path(self.recording.path)

    def to_session_config(self) -> SessionConfig:
        """
        Build the immutable per-run configuration.

        Raises:
            ConfigurationError: If a required value is missing or invalid
        """
        missing = [
            name for name, value in (
                ("ZOOM_MEETING_ID", self.zoom.meeting_id),
                ("ZOOM_MEETING_URL", self.zoom.meeting_url),
                ("AWS_S3_BUCKET_NAME", self.aws.s3_bucket_name),
            )
            if not value
        ]
        if missing:
            raise ConfigurationError(
                f"Missing required settings: {', '.join(missing)}",
                details={"missing": missing},
            )

        return SessionConfig(
            session_id=self.zoom.meeting_id,
            passcode=self.zoom.meeting_password,
            join_url=self.zoom.meeting_url,
            bucket_name=self.aws.s3_bucket_name,
            output_dir=self.recordings_dir,
            duration_minutes=self.recording.duration_minutes,
            file_extension=self.recording.container,
        )


def load_settings(**overrides) -> Settings:
    """
    Load settings from the environment and .env.

    Raises:
        ConfigurationError: If a value fails validation
    """
    try:
        return Settings(**overrides)
    except ValueError as e:
        # pydantic.ValidationError subclasses ValueError
        raise ConfigurationError(f"Invalid configuration: {e}") from e
