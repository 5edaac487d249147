import base64
from dataclasses import dataclass, field


@dataclass
class ClientConfig:
    client_id: str
    client_secret: str
    redirect_uri: str
    poll_interval_ms: int
    request_timeout_ms: int


@dataclass
class AppConfig:
    client: ClientConfig
    data_directory: str
    config_path: str


@dataclass(frozen=True)
class Credentials:
    client_id: str
    client_secret: str
    basic_token: str = field(init=False, repr=False)

    def __post_init__(self):
        token = base64.b64encode(f"{self.client_id}:{self.client_secret}".encode("utf-8")).decode("ascii")
        object.__setattr__(self, "basic_token", token)


@dataclass(frozen=True)
class TokenState:
    access_token: str = field(default="", repr=False)
    refresh_token: str = field(default="", repr=False)
    auth_code: str = field(default="", repr=False)
    expires_at: float = 0.0
    logged_in: bool = False

    def is_expired(self, now: float) -> bool:
        return now > self.expires_at
