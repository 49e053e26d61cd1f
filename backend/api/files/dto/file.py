"""File Data Transfer Objects."""

import ipaddress
from datetime import datetime, timedelta, timezone

from pydantic import BaseModel, ConfigDict, Field, field_validator

from config import MAX_UPLOAD_BYTES


def parse_networks(value: str) -> list[ipaddress.IPv4Network | ipaddress.IPv6Network]:
    """Parse a comma-separated list of IP addresses / CIDR networks."""
    networks = []
    for part in value.split(","):
        part = part.strip()
        if part:
            networks.append(ipaddress.ip_network(part, strict=False))
    return networks


class LinkConfig(BaseModel):
    """Download policy attached to a link. Immutable once issued."""

    model_config = ConfigDict(frozen=True)

    expiration_minutes: int = Field(gt=0)
    max_downloads: int = Field(gt=0)
    ip_restriction: str | None = None
    max_file_size: int = Field(default=MAX_UPLOAD_BYTES, gt=0)

    @field_validator("ip_restriction")
    @classmethod
    def _normalize_ip_restriction(cls, value: str | None) -> str | None:
        if value is None or not value.strip():
            return None
        try:
            networks = parse_networks(value)
        except ValueError as e:
            raise ValueError(f"Invalid IP restriction: {e}") from e
        if not networks:
            return None
        return ",".join(str(n) for n in networks)

    def allows(self, origin: str | None) -> bool:
        """True if ``origin`` satisfies the IP restriction (or there is none)."""
        if self.ip_restriction is None:
            return True
        if not origin:
            return False
        try:
            address = ipaddress.ip_address(origin.strip())
        except ValueError:
            return False
        return any(address in network for network in parse_networks(self.ip_restriction))


class FileRecord(BaseModel):
    """Metadata for one issued link."""

    model_config = ConfigDict(frozen=True)

    token: str
    file_name: str
    file_size: int
    mime_type: str
    config: LinkConfig
    created_at: datetime
    download_count: int = 0

    @field_validator("created_at")
    @classmethod
    def _as_utc(cls, value: datetime) -> datetime:
        # SQLite hands back naive datetimes
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @property
    def expires_at(self) -> datetime:
        return self.created_at + timedelta(minutes=self.config.expiration_minutes)

    @property
    def remaining_downloads(self) -> int:
        return max(self.config.max_downloads - self.download_count, 0)

    def is_expired(self, now: datetime) -> bool:
        return now - self.created_at > timedelta(minutes=self.config.expiration_minutes)


class FileResponse(BaseModel):
    token: str
    file_name: str
    size: int
    mime_type: str
    created_at: datetime
    expires_at: datetime
    download_count: int
    max_downloads: int
    remaining_downloads: int
    ip_restricted: bool

    @classmethod
    def from_record(cls, record: FileRecord) -> "FileResponse":
        return cls(
            token=record.token,
            file_name=record.file_name,
            size=record.file_size,
            mime_type=record.mime_type,
            created_at=record.created_at,
            expires_at=record.expires_at,
            download_count=record.download_count,
            max_downloads=record.config.max_downloads,
            remaining_downloads=record.remaining_downloads,
            ip_restricted=record.config.ip_restriction is not None,
        )
