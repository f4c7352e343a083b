"""Configuration document, its on-disk key layout and the per-consumer projections."""

from dataclasses import dataclass
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictInt, StrictStr

ProviderName = Literal["openai", "google", "ollama"]
BrowserName = Literal["chromium", "firefox", "webkit"]

DEFAULT_VIDEO_DIR = "./playwright-videos"


class RecordVideo(BaseModel):
    """Video recording settings as stored on disk: {"dir": "..."}."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    dir: StrictStr = DEFAULT_VIDEO_DIR


class ConfigDocument(BaseModel):
    """The durable configuration. Frozen: every instance is a Snapshot.

    Field aliases are the top-level keys of the backing JSON document.
    """

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    # LLM partition
    provider: ProviderName = "ollama"
    model: StrictStr = "deepseek-r1:1.5b"
    api_key: StrictStr | None = Field(default=None, alias="apiKey")
    base_url: StrictStr | None = Field(default="http://localhost:11434", alias="baseUrl")

    # Browser partition
    browser_name: BrowserName = Field(default="chromium", alias="browserName")
    enable_stealth: StrictBool = Field(default=True, alias="enableStealth")
    headless: StrictBool = True
    slow_mo: StrictInt = Field(default=500, ge=0, alias="slowMo")
    viewport_width: StrictInt = Field(default=1280, gt=0, alias="viewportWidth")
    viewport_height: StrictInt = Field(default=720, gt=0, alias="viewportHeight")
    user_agent: StrictStr | None = Field(default=None, alias="userAgent")
    take_initial_screenshot: StrictBool = Field(default=False, alias="takeInitialScreenshot")
    record_video: StrictBool | RecordVideo = Field(default=False, alias="recordVideo")
    ignore_https_errors: StrictBool = Field(default=True, alias="ignoreHTTPSErrors")

    def to_disk(self) -> dict[str, Any]:
        """Return the JSON-ready dict keyed by disk names."""
        return self.model_dump(by_alias=True, mode="json")

    def llm_view(self) -> "LLMView":
        return LLMView(
            provider=self.provider,
            model=self.model,
            api_key=self.api_key,
            base_url=self.base_url,
        )

    def browser_view(self) -> "BrowserView":
        if isinstance(self.record_video, RecordVideo):
            video_dir: str | None = self.record_video.dir
        elif self.record_video:
            video_dir = DEFAULT_VIDEO_DIR
        else:
            video_dir = None
        return BrowserView(
            browser_name=self.browser_name,
            enable_stealth=self.enable_stealth,
            headless=self.headless,
            slow_mo=self.slow_mo,
            viewport_width=self.viewport_width,
            viewport_height=self.viewport_height,
            user_agent=self.user_agent,
            take_initial_screenshot=self.take_initial_screenshot,
            video_dir=video_dir,
            ignore_https_errors=self.ignore_https_errors,
        )


def _disk_keys(*names: str) -> frozenset[str]:
    fields = ConfigDocument.model_fields
    return frozenset(fields[n].alias or n for n in names)


LLM_KEYS = _disk_keys("provider", "model", "api_key", "base_url")
BROWSER_KEYS = _disk_keys(
    "browser_name",
    "enable_stealth",
    "headless",
    "slow_mo",
    "viewport_width",
    "viewport_height",
    "user_agent",
    "take_initial_screenshot",
    "record_video",
    "ignore_https_errors",
)


@dataclass(frozen=True)
class LLMView:
    """Projection consumed by the AI-provider manager."""

    provider: ProviderName
    model: str
    api_key: str | None = None
    base_url: str | None = None


@dataclass(frozen=True)
class BrowserView:
    """Projection consumed by the browser launcher."""

    browser_name: BrowserName
    enable_stealth: bool
    headless: bool
    slow_mo: int
    viewport_width: int
    viewport_height: int
    user_agent: str | None
    take_initial_screenshot: bool
    video_dir: str | None  # None = recording disabled
    ignore_https_errors: bool

    @property
    def viewport(self) -> dict[str, int]:
        return {"width": self.viewport_width, "height": self.viewport_height}
