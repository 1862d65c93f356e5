import logging
from importlib.metadata import version

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import BaseModel, PositiveFloat, PositiveInt, model_validator, Field

from .utils import LoggingConfig
from ..models import CommandId

logger = logging.getLogger(__name__)

class ConnectionSettings(BaseModel):
    """Where Gazepoint Control listens and what to switch on after connecting."""
    host: str = Field("127.0.0.1", description="Gazepoint Control server address.")
    port: int = Field(4242, ge=1, le=65535)
    debug: bool = Field(False, description="Mirror diagnostic logs into the host's output pane.")
    connect_timeout_s: PositiveFloat = 5.0
    enabled_streams: list[CommandId] = Field(
        default=[
            CommandId.ENABLE_SEND_COUNTER,
            CommandId.ENABLE_SEND_POG_FIX,
            CommandId.ENABLE_SEND_POG_BEST,
            CommandId.ENABLE_SEND_CURSOR,
            CommandId.ENABLE_SEND_DATA,
        ],
        description="ENABLE_SEND_* switches set to STATE=1 right after connecting."
    )

class AcknowledgementSettings(BaseModel):
    timeout_s: PositiveFloat = Field(9.0, description="How long a confirmed send waits for its ACK.")
    poll_checks: PositiveInt = Field(5, description="Evenly spaced checks across the timeout window.")

class CalibrationTimings(BaseModel):
    """
    Wall-clock delays of the calibration choreography. These are tuned to
    the GP3 hardware; change them only against a real device.
    """
    start_delay_s: float = Field(1.0, ge=0, description="SHOW -> START, lets the overlay render.")
    hide_delay_s: PositiveFloat = Field(12.0, description="SHOW -> hide, measured from the overlay being shown.")
    stare_window_s: PositiveFloat = Field(7.0, description="Fixed stare window per screen corner.")
    step_pause_s: float = Field(2.0, ge=0, description="Pause after each completed step.")
    material_settle_s: float = Field(2.0, ge=0, description="Pause after the calibration text opens.")
    point_timeout_s: PositiveFloat | None = Field(None, description="Optional CALIBRATE_TIMEOUT sent before the run.")
    point_delay_s: PositiveFloat | None = Field(None, description="Optional CALIBRATE_DELAY sent before the run.")

    @model_validator(mode='after')
    def validate_delays(self) -> "CalibrationTimings":
        if self.hide_delay_s <= self.start_delay_s:
            raise ValueError('hide_delay_s must be longer than start_delay_s.')
        return self

class TelemetrySettings(BaseModel):
    decimation: PositiveInt = Field(180, description="Forward one REC frame in N to the sinks.")
    queue_size: PositiveInt = 1000

class ZmqSinkConfig(BaseModel):
    enabled: bool = False
    host: str = "tcp://*:5555"

class AppSettings(BaseSettings):
    """
    Application settings, loaded from environment variables and defaults.
    """
    use_dummy_mode: bool = False

    connection: ConnectionSettings = Field(default_factory=ConnectionSettings)
    acknowledgement: AcknowledgementSettings = Field(default_factory=AcknowledgementSettings)
    calibration: CalibrationTimings = Field(default_factory=CalibrationTimings)
    telemetry: TelemetrySettings = Field(default_factory=TelemetrySettings)

    # Sinks
    zmq: ZmqSinkConfig = Field(default_factory=ZmqSinkConfig)

    # Logging
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    __version__: str = version("gp3-attention")

    model_config = SettingsConfigDict(
        env_prefix="GP3__",
        env_file=".env",
        env_nested_delimiter='__',
        case_sensitive=False
    )
