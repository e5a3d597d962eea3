"""Site configuration via environment variables."""

from pathlib import Path

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_LOG_LEVELS = frozenset({"debug", "info", "warning", "error", "critical"})


class Settings(BaseSettings):
    """Blog tooling configuration loaded from BLOG_* environment variables."""

    model_config = SettingsConfigDict(env_prefix="BLOG_", env_file=".env", extra="ignore")

    # Layout of the site source tree
    site_root: Path = Field(default=Path("."), description="Root of the site source tree")
    posts_dir: Path = Field(default=Path("_posts"), description="Directory holding post files")
    layouts_dir: Path = Field(
        default=Path("_layouts"), description="Directory holding Jinja2 layout templates"
    )
    static_dir: Path = Field(
        default=Path("assets"), description="Static files copied verbatim into the output"
    )
    output_dir: Path = Field(default=Path("_site"), description="Build output directory")

    # Site metadata
    site_title: str = Field(default="Blog", description="Title shown on index pages")
    base_url: str = Field(default="", description="URL prefix prepended to every link")
    permalink: str = Field(
        default="/:year/:month/:day/:slug.html", description="Permalink pattern for posts"
    )
    default_layout: str = Field(default="post", description="Layout suggested for new posts")

    # Build behaviour
    include_drafts: bool = Field(default=False, description="Publish posts marked draft")
    clean_output: bool = Field(default=True, description="Empty output_dir before building")
    disabled_rules: str = Field(
        default="", description="Comma-separated lint rules to skip, e.g. 'empty-body'"
    )

    # External link checks
    external_timeout: float = Field(default=10.0, description="Per-request timeout in seconds")
    external_concurrency: int = Field(default=10, description="Concurrent external requests")

    # Preview server
    host: str = Field(default="127.0.0.1", description="Preview server bind host")
    port: int = Field(default=4000, description="Preview server bind port")
    log_level: str = Field(default="info", description="Log level")

    @field_validator("log_level")
    @classmethod
    def _validate_log_level(cls, v: str) -> str:
        level = v.lower()
        if level not in _LOG_LEVELS:
            raise ValueError(f"BLOG_LOG_LEVEL must be one of {sorted(_LOG_LEVELS)}, got {v!r}")
        return level

    @field_validator("permalink")
    @classmethod
    def _validate_permalink(cls, v: str) -> str:
        if ":slug" not in v and ":title" not in v:
            raise ValueError("BLOG_PERMALINK must contain :slug or :title")
        if not v.startswith("/"):
            v = "/" + v
        return v

    @field_validator("base_url")
    @classmethod
    def _strip_base_url(cls, v: str) -> str:
        return v.rstrip("/")

    @model_validator(mode="after")
    def _check_limits(self) -> "Settings":
        if self.external_concurrency < 1:
            raise ValueError("BLOG_EXTERNAL_CONCURRENCY must be at least 1")
        if self.external_timeout <= 0:
            raise ValueError("BLOG_EXTERNAL_TIMEOUT must be positive")
        return self

    def _resolve(self, path: Path) -> Path:
        return path if path.is_absolute() else self.site_root / path

    @property
    def posts_path(self) -> Path:
        return self._resolve(self.posts_dir)

    @property
    def layouts_path(self) -> Path:
        return self._resolve(self.layouts_dir)

    @property
    def static_path(self) -> Path:
        return self._resolve(self.static_dir)

    @property
    def output_path(self) -> Path:
        return self._resolve(self.output_dir)

    @property
    def disabled_rule_set(self) -> frozenset[str]:
        """Parse disabled_rules into a set of rule names."""
        return frozenset(r.strip() for r in self.disabled_rules.split(",") if r.strip())
