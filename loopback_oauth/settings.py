"""Environment-driven defaults for the loopback OAuth command line."""

import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from loopback_oauth.exchanger import DEFAULT_LISTENER_PATH, DEFAULT_LISTENER_PORT

ENV_PREFIX = "LOOPBACK_OAUTH_"

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


@dataclass
class ExchangerSettings:
    """Listener settings used when the CLI is not given explicit options."""
    port: int = DEFAULT_LISTENER_PORT
    path: str = DEFAULT_LISTENER_PATH
    host: str = ""
    timeout: Optional[float] = None
    open_browser: bool = True
    load_errors: List[str] = field(default_factory=list, repr=False, compare=False)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "ExchangerSettings":
        """
        Load settings from ``LOOPBACK_OAUTH_*`` environment variables.

        Unparseable values are kept out of the result and reported by
        ``validate()`` on the returned instance.
        """
        environ = os.environ if environ is None else environ
        settings = cls()

        port = environ.get(f"{ENV_PREFIX}PORT")
        if port:
            try:
                settings.port = int(port)
            except ValueError:
                settings.load_errors.append(f"{ENV_PREFIX}PORT must be an integer, got {port!r}")

        path = environ.get(f"{ENV_PREFIX}PATH")
        if path:
            settings.path = path

        host = environ.get(f"{ENV_PREFIX}HOST")
        if host:
            settings.host = host

        timeout = environ.get(f"{ENV_PREFIX}TIMEOUT")
        if timeout:
            try:
                settings.timeout = float(timeout)
            except ValueError:
                settings.load_errors.append(f"{ENV_PREFIX}TIMEOUT must be a number, got {timeout!r}")

        open_browser = environ.get(f"{ENV_PREFIX}OPEN_BROWSER")
        if open_browser:
            lowered = open_browser.strip().lower()
            if lowered in _TRUE_VALUES:
                settings.open_browser = True
            elif lowered in _FALSE_VALUES:
                settings.open_browser = False
            else:
                settings.load_errors.append(
                    f"{ENV_PREFIX}OPEN_BROWSER must be a boolean, got {open_browser!r}"
                )

        return settings

    def validate(self) -> List[str]:
        """Validate configuration settings, returning a list of problems."""
        errors = list(self.load_errors)
        if not 0 <= self.port <= 65535:
            errors.append(f"Listener port must be between 0 and 65535, got {self.port}")
        if self.timeout is not None and self.timeout <= 0:
            errors.append(f"Timeout must be positive, got {self.timeout}")
        return errors

    def to_dict(self) -> Dict[str, Any]:
        return {
            "port": self.port,
            "path": self.path,
            "host": self.host,
            "timeout": self.timeout,
            "open_browser": self.open_browser,
        }
