"""
Global configuration for the jokeclient package.

This module provides a simple configuration system following Convention over Configuration (CoC).
Users can optionally call JOKES.configure() at application startup to customize defaults.
If not called, sensible defaults are used.

Hierarchy of precedence (highest to lowest):
1. *Options passed to client constructors
2. Values set via JOKES.configure()
3. Environment variables (JOKECLIENT_*) - when allow_env_override=True
4. Hardcoded defaults (in dataclass fields)

Example:
    >>> from jokeclient import JOKES
    >>>
    >>> # Pre-loaded with defaults + env vars
    >>> timeout = JOKES.config.client.request_timeout
    >>>
    >>> # Custom configuration
    >>> JOKES.configure(
    ...     client={"request_timeout": 3.0},
    ...     rate_limit={"strategy": "scheduler", "max_requests": 5},
    ... )
"""

from __future__ import annotations

import os
from collections.abc import Callable
from dataclasses import dataclass, field, fields, replace
from functools import wraps
from typing import Any, Literal, Self

# Type alias for rate limit strategies
RateLimitStrategy = Literal["fixed_window", "scheduler"]

_SECTIONS = ("client", "rate_limit")


# =============================================================================
# Exceptions
# =============================================================================


class ConfigEnvVarError(ValueError):
    """Raised when an environment variable has an invalid value."""

    def __init__(
        self,
        env_var: str,
        value: str,
        expected_type: str,
        cause: Exception | None = None,
    ):
        self.env_var = env_var
        self.value = value
        self.expected_type = expected_type
        super().__init__(f"Invalid value for {env_var}: '{value}' (expected {expected_type})")
        self.__cause__ = cause


class ConfigValidationError(ValueError):
    """Raised when a configuration value fails validation."""

    def __init__(
        self,
        field: str,
        value: Any,
        message: str,
        section: str | None = None,
    ):
        self.field = field
        self.value = value
        self.section = section
        prefix = f"[{section}] " if section else ""
        super().__init__(f"{prefix}Invalid value for '{field}': {value!r}. {message}")


# =============================================================================
# Environment Variables
# =============================================================================


class EnvVars:
    """
    Utility class for reading environment variables with type conversion.

    Example:
        >>> EnvVars.get("JOKECLIENT_REQUEST_TIMEOUT", type_hint=float)
        5.0
        >>> EnvVars.get("UNDEFINED_VAR")
        None
    """

    @staticmethod
    def get(
        var_name: str,
        type_hint: Any = str,
        converter: Callable[[str], Any] | None = None,
    ) -> Any:
        """
        Read an environment variable with optional type conversion.

        Args:
            var_name: The environment variable name.
            type_hint: Type hint used to infer the converter (ignored if converter is provided).
            converter: Custom converter function (takes precedence over type_hint).

        Returns:
            The converted value, or None if env var is not set/empty.

        Raises:
            ConfigEnvVarError: If the value cannot be converted.
        """
        raw_value = os.environ.get(var_name)
        if not raw_value:  # None or empty string
            return None

        actual_converter = converter or EnvVars._infer_converter(type_hint)
        try:
            return actual_converter(raw_value)
        except (ValueError, TypeError) as e:
            raise ConfigEnvVarError(
                env_var=var_name,
                value=raw_value,
                expected_type=type_hint.__name__ if hasattr(type_hint, "__name__") else str(type_hint),
                cause=e,
            ) from e

    @staticmethod
    def _infer_converter(type_hint: Any) -> Callable[[str], Any]:
        """
        Infer converter function from type hint.

        Handles both actual types and string annotations (PEP 563).
        """
        type_str = str(type_hint)

        if type_hint is int or type_str == "int":
            return int
        if type_hint is float or type_str == "float":
            return float
        if type_hint is bool or type_str == "bool":
            return lambda v: v.lower() in ("true", "1", "yes")
        return str


def _is_http_url(value: str | None) -> bool:
    return value is not None and value.startswith(("http://", "https://"))


# =============================================================================
# Base Class
# =============================================================================


@dataclass(frozen=True)
class OverridableConfig:
    """
    Base class for immutable configuration dataclasses.

    Provides `.with_overrides()` method for creating new instances
    with partial field updates. Uses strict validation to catch
    typos and invalid field names early.

    Example:
        >>> config = ClientConfig()
        >>> custom = config.with_overrides({"request_timeout": 2.5})
        >>> custom.request_timeout
        2.5
    """

    def with_overrides(
        self,
        overrides: dict[str, Any],
        allow_none_fields: set[str] | None = None,
    ) -> Self:
        """
        Return a new instance with specified fields overridden.

        Args:
            overrides: Dict of field names to new values.
                       Only existing fields are allowed.
            allow_none_fields: Set of field names that accept None as a valid value.
                       By default, None values are filtered out.

        Returns:
            New instance with updated values.

        Raises:
            ValueError: If overrides contains unknown field names.
        """
        if not overrides:
            return self

        valid_fields = {f.name for f in fields(self)}
        invalid_fields = set(overrides.keys()) - valid_fields

        if invalid_fields:
            raise ValueError(
                f"Unknown config fields: {invalid_fields}. "
                f"Valid fields are: {valid_fields}"
            )

        allow_none = allow_none_fields or set()
        filtered = {k: v for k, v in overrides.items() if v is not None or k in allow_none}
        return replace(self, **filtered) if filtered else self

    def with_env_vars(self) -> Self:
        """
        Return new instance with environment variables applied.

        Reads env vars declared in field metadata and applies them as overrides.

        Raises:
            ConfigEnvVarError: If an env var has an invalid value.
        """
        overrides: dict[str, Any] = {}
        for f in fields(self):
            env_var = f.metadata.get("env")
            if env_var:
                value = EnvVars.get(
                    var_name=env_var,
                    type_hint=f.metadata.get("type", f.type),
                    converter=f.metadata.get("converter"),
                )
                if value is not None:
                    overrides[f.name] = value
        return self.with_overrides(overrides)


# =============================================================================
# Configuration Dataclasses
# =============================================================================


@dataclass(frozen=True)
class ClientConfig(OverridableConfig):
    """
    Configuration for JokeClient instances.

    These settings are used as defaults when creating a JokeClient
    without explicitly providing JokeClientOptions.

    Attributes:
        base_url: Base URL of the JokeAPI service.
            Env var: JOKECLIENT_BASE_URL

        request_timeout: Total time budget in seconds for a single fetch.
            Env var: JOKECLIENT_REQUEST_TIMEOUT

        user_agent: Value of the User-Agent header. None means "jokeclient/<version>".
            Env var: JOKECLIENT_USER_AGENT

        lang: Default language tag applied when FetchOptions does not set one.
            None means the service default (English).
            Env var: JOKECLIENT_LANG

    Example:
        >>> from jokeclient import JOKES
        >>> JOKES.config.client.request_timeout
        5.0
    """

    base_url: str = field(default="https://v2.jokeapi.dev", metadata={"env": "JOKECLIENT_BASE_URL"})
    request_timeout: float = field(default=5.0, metadata={"env": "JOKECLIENT_REQUEST_TIMEOUT", "type": float})
    user_agent: str | None = field(default=None, metadata={"env": "JOKECLIENT_USER_AGENT", "type": str})
    lang: str | None = field(default=None, metadata={"env": "JOKECLIENT_LANG", "type": str})

    def validate(self) -> Self:
        """Validate client configuration fields."""
        if not _is_http_url(self.base_url):
            raise ConfigValidationError(
                "base_url", self.base_url,
                "Must start with 'http://' or 'https://'.", section="client"
            )
        if self.request_timeout <= 0:
            raise ConfigValidationError(
                "request_timeout", self.request_timeout,
                "Must be greater than 0.", section="client"
            )
        if self.user_agent is not None and not self.user_agent.strip():
            raise ConfigValidationError(
                "user_agent", self.user_agent,
                "Must not be blank.", section="client"
            )
        if self.lang is not None and not self.lang.strip():
            raise ConfigValidationError(
                "lang", self.lang,
                "Must not be blank.", section="client"
            )
        return self


@dataclass(frozen=True)
class RateLimitConfig(OverridableConfig):
    """
    Configuration for client-side admission control.

    Available strategies:
        - "fixed_window": Synchronous admit-or-reject check. At most
            max_requests calls per time_window; the budget resets fully
            when the window elapses. Denied calls fail fast.
        - "scheduler": Queues calls and runs them one at a time, at least
            min_time seconds apart, with a reservoir of max_requests per
            time_window. Calls wait in FIFO order instead of failing.

    Attributes:
        enabled: Whether to apply admission control at all.
            Env var: JOKECLIENT_RATE_LIMIT_ENABLED

        strategy: Admission strategy to use.
            Env var: JOKECLIENT_RATE_LIMIT_STRATEGY

        max_requests: Maximum requests admitted per time window.
            Env var: JOKECLIENT_RATE_LIMIT_MAX_REQUESTS

        time_window: Window length in seconds.
            Env var: JOKECLIENT_RATE_LIMIT_TIME_WINDOW

        min_time: (scheduler only) Minimum seconds between operation starts.
            Env var: JOKECLIENT_RATE_LIMIT_MIN_TIME

    Example:
        >>> from jokeclient import JOKES
        >>> JOKES.configure(
        ...     rate_limit={
        ...         "strategy": "scheduler",
        ...         "max_requests": 10,
        ...         "time_window": 60.0,
        ...         "min_time": 0.1,
        ...     }
        ... )
    """

    enabled: bool = field(default=True, metadata={"env": "JOKECLIENT_RATE_LIMIT_ENABLED"})
    strategy: RateLimitStrategy = field(default="fixed_window", metadata={"env": "JOKECLIENT_RATE_LIMIT_STRATEGY", "type": str})
    max_requests: int = field(default=10, metadata={"env": "JOKECLIENT_RATE_LIMIT_MAX_REQUESTS"})
    time_window: float = field(default=60.0, metadata={"env": "JOKECLIENT_RATE_LIMIT_TIME_WINDOW"})
    min_time: float = field(default=0.1, metadata={"env": "JOKECLIENT_RATE_LIMIT_MIN_TIME"})

    def validate(self) -> Self:
        """Validate rate limit configuration fields."""
        valid_strategies = ("fixed_window", "scheduler")
        if self.strategy not in valid_strategies:
            raise ConfigValidationError(
                "strategy", self.strategy,
                f"Must be one of: {valid_strategies}.", section="rate_limit"
            )
        if self.max_requests < 0:
            raise ConfigValidationError(
                "max_requests", self.max_requests,
                "Must be >= 0.", section="rate_limit"
            )
        if self.time_window < 0:
            raise ConfigValidationError(
                "time_window", self.time_window,
                "Must be >= 0.", section="rate_limit"
            )
        if self.strategy == "scheduler" and self.time_window == 0:
            raise ConfigValidationError(
                "time_window", self.time_window,
                "Must be greater than 0 for the 'scheduler' strategy.", section="rate_limit"
            )
        if self.min_time < 0:
            raise ConfigValidationError(
                "min_time", self.min_time,
                "Must be >= 0.", section="rate_limit"
            )
        return self


@dataclass(frozen=True)
class ConfigEntry:
    """
    A configuration field with its resolved value and source.

    Attributes:
        name: The field name (e.g., "request_timeout").
        value: The resolved value.
        source: Where the value came from:
            - "default": Hardcoded default value
            - "env:VAR_NAME": Environment variable
            - "user": Set via JOKES.configure()

    Example:
        >>> entry = ConfigEntry("request_timeout", 2.5, "user")
        >>> entry.formatted_value
        '2.5'
    """

    name: str
    value: Any
    source: str

    @property
    def formatted_value(self) -> str:
        """Return value formatted for display, truncating long strings."""
        if self.value is None:
            return "None"

        str_value = str(self.value)
        max_length = 50
        if len(str_value) > max_length:
            return str_value[: max_length - 3] + "..."

        return str_value


@dataclass(frozen=True)
class JokesConfigTracker:
    """
    Tracks the source of config field values.

    An immutable tracker that records where each configuration value came from
    (default, env var, or configure()). Used internally by JokesConfig
    for debugging via JOKES.explain().

    Attributes:
        sources: Dict tracking source of each field value.
            Structure: {"section": {"field": "source"}}
    """

    sources: dict[str, dict[str, str]] = field(default_factory=dict)

    @staticmethod
    def track_changes(
        source_type: str,
    ) -> Callable[[Callable[..., JokesConfig]], Callable[..., JokesConfig]]:
        """
        Decorator that tracks config changes made by the decorated method.

        Wraps methods that return a new JokesConfig and records which
        fields the source touched.

        Args:
            source_type: Source label for tracking ("env" or "user").
        """

        def decorator(
            method: Callable[..., JokesConfig],
        ) -> Callable[..., JokesConfig]:
            @wraps(method)
            def wrapper(self: JokesConfig, *args: Any, **kwargs: Any) -> JokesConfig:
                new_config = method(self, *args, **kwargs)
                new_tracker = self._tracker.with_changes_tracked(
                    new_config, source_type, overrides=kwargs
                )
                return replace(new_config, _tracker=new_tracker)

            return wrapper

        return decorator

    def with_changes_tracked(
        self,
        new_config: JokesConfig,
        source_type: str,
        overrides: dict[str, Any] | None = None,
    ) -> JokesConfigTracker:
        """Return new tracker with the fields touched by `source_type` recorded."""
        new_sources = {section: dict(flds) for section, flds in self.sources.items()}

        for section_name in _SECTIONS:
            section_config = getattr(new_config, section_name)
            section_sources = new_sources.setdefault(section_name, {})
            for f in fields(section_config):
                if source_type == "env":
                    # Touched if its env var is set and non-empty (same rule as EnvVars.get)
                    env_var = f.metadata.get("env")
                    if env_var and os.environ.get(env_var):
                        section_sources[f.name] = f"env:{env_var}"
                elif source_type == "user" and overrides:
                    section_overrides = overrides.get(section_name) or {}
                    if f.name in section_overrides:
                        section_sources[f.name] = source_type

        return JokesConfigTracker(
            sources={section: flds for section, flds in new_sources.items() if flds}
        )


@dataclass(frozen=True)
class JokesConfig:
    """
    Root configuration holding every section.

    Attributes:
        client: JokeClient defaults.
        rate_limit: Admission control defaults.

    Example:
        >>> from jokeclient import JOKES
        >>> JOKES.config.client.base_url
        'https://v2.jokeapi.dev'
        >>> JOKES.config.rate_limit.max_requests
        10
    """

    client: ClientConfig = field(default_factory=ClientConfig)
    rate_limit: RateLimitConfig = field(default_factory=RateLimitConfig)
    _tracker: JokesConfigTracker = field(default_factory=JokesConfigTracker, repr=False)

    @JokesConfigTracker.track_changes("env")
    def with_env_vars(self) -> JokesConfig:
        """Return a new config with JOKECLIENT_* environment variables applied on top."""
        return JokesConfig(
            client=self.client.with_env_vars(),
            rate_limit=self.rate_limit.with_env_vars(),
            _tracker=self._tracker,
        )

    @JokesConfigTracker.track_changes("user")
    def with_section_overrides(
        self,
        *,
        client: dict[str, Any] | None = None,
        rate_limit: dict[str, Any] | None = None,
    ) -> JokesConfig:
        """
        Return a new config with overrides applied to nested sections.

        Each section dict is merged with the existing section config,
        only overriding the specified fields.

        Example:
            >>> custom = JokesConfig().with_section_overrides(
            ...     client={"request_timeout": 2.0},
            ... )
        """
        return JokesConfig(
            client=self.client.with_overrides(client or {}, allow_none_fields={"user_agent", "lang"}),
            rate_limit=self.rate_limit.with_overrides(rate_limit or {}),
            _tracker=self._tracker,
        )

    def explain_data(self) -> dict[str, list[ConfigEntry]]:
        """
        Return config data structured for explain output.

        Returns:
            Dict mapping section names to list of ConfigEntry objects.
        """
        result: dict[str, list[ConfigEntry]] = {}
        for section_name in _SECTIONS:
            section_config = getattr(self, section_name)
            section_sources = self._tracker.sources.get(section_name, {})
            result[section_name] = [
                ConfigEntry(
                    name=f.name,
                    value=getattr(section_config, f.name),
                    source=section_sources.get(f.name, "default"),
                )
                for f in fields(section_config)
            ]
        return result


# =============================================================================
# Global Configuration Singleton
# =============================================================================


class _Jokes:
    """
    Singleton for package configuration.

    Use `JOKES.configure()` to customize settings and `JOKES.config`
    to access current configuration.

    Example:
        >>> from jokeclient import JOKES
        >>> JOKES.configure(client={"request_timeout": 2.0})
        >>> print(JOKES.config.client.request_timeout)
    """

    def __init__(self) -> None:
        """Initialize with defaults and environment variables."""
        self._config: JokesConfig = JokesConfig().with_env_vars()

    def configure(
        self,
        *,
        client: dict[str, Any] | None = None,
        rate_limit: dict[str, Any] | None = None,
        allow_env_override: bool = True,
    ) -> JokesConfig:
        """
        Configure package settings.

        Call at application startup to customize defaults. Clients created
        afterwards pick up the new values; existing clients keep theirs.

        Args:
            client: JokeClient config overrides (base_url, request_timeout, ...).
            rate_limit: Admission control overrides (strategy, max_requests, ...).
            allow_env_override: If True (default), env vars are used as fallback
                for fields NOT provided. If False, ignores env vars entirely.

        Returns:
            The configured JokesConfig instance.

        Raises:
            ValueError: If any dict contains unknown field names.
            ConfigValidationError: If any config value fails validation.
        """
        base = JokesConfig()
        if allow_env_override:
            base = base.with_env_vars()

        self._config = base.with_section_overrides(
            client=client,
            rate_limit=rate_limit,
        )
        return self.validate()

    @property
    def config(self) -> JokesConfig:
        """Access current configuration (read-only)."""
        return self._config

    def reset(self) -> JokesConfig:
        """
        Reset configuration to defaults + env vars.

        Useful for testing to ensure clean state between tests.
        """
        self._config = JokesConfig().with_env_vars()
        return self.validate()

    def validate(self) -> JokesConfig:
        """
        Validate current configuration.

        Raises:
            ConfigValidationError: If any config value is invalid.
        """
        self._config.client.validate()
        self._config.rate_limit.validate()
        return self._config

    def explain(
        self,
        output: Callable[[str], None] = print,
    ) -> None:
        """
        Print current configuration with sources.

        Args:
            output: Callable to output each line. Defaults to print.
                    Can be used with logging: `JOKES.explain(logger.info)`
        """
        name_width = 20
        value_width = 50
        total_width = 2 + name_width + 2 + (value_width + 2) + 1 + 8

        output("jokeclient Configuration:")
        output("=" * total_width)
        output(f"  {'Field':<{name_width}} │ {'Value':<{value_width}} │ Source")
        output(f"--{'-' * name_width}-+{'-' * (value_width + 2)}+--------")

        for section_name, entries in self._config.explain_data().items():
            output(f"[{section_name}]")
            for entry in entries:
                dots = "." * (name_width - len(entry.name))
                value_padded = entry.formatted_value.ljust(value_width)
                marker = "✎" if entry.source != "default" else " "
                output(f"  {entry.name} {dots} {value_padded} {marker} {entry.source}")

        output("=" * total_width)

    def __repr__(self) -> str:
        return f"JOKES(config={self._config!r})"


# Global singleton instance - always reflects current configuration
JOKES: _Jokes = _Jokes()
JOKES.validate()
