"""Prefix-based rewrite of inbound paths to a backend origin.

A rewrite rule maps a literal path prefix to an origin. The first rule whose
prefix starts the inbound path wins, and the request is forwarded to
``destination_origin`` followed by the untouched inbound path and query
string. Paths no rule matches are served locally.

Rules are validated when the router is built; a malformed rule is a
configuration error and never surfaces while serving a request.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from urllib.parse import urlsplit

from conduit.core.config import EdgeConfig, RewriteRuleConfig
from conduit.core.exceptions import ConfigurationError


@dataclass(frozen=True, slots=True)
class RewriteRule:
    """Literal path prefix forwarded to a backend origin.

    Attributes:
        match_prefix: Path prefix tested with ``str.startswith``, never a regex.
        destination_origin: ``scheme://host[:port]`` the request is sent to.
    """

    match_prefix: str
    destination_origin: str

    def __post_init__(self) -> None:
        if not self.match_prefix.startswith("/"):
            msg = f"Rewrite prefix must start with '/': {self.match_prefix!r}"
            raise ConfigurationError(msg, context={"match_prefix": self.match_prefix})

        origin = urlsplit(self.destination_origin)
        if origin.scheme not in {"http", "https"} or not origin.netloc:
            msg = (
                "Rewrite destination must be an http(s) origin: "
                f"{self.destination_origin!r}"
            )
            raise ConfigurationError(
                msg, context={"destination_origin": self.destination_origin}
            )
        if origin.path not in {"", "/"} or origin.query or origin.fragment:
            msg = (
                "Rewrite destination must not carry a path, query or fragment: "
                f"{self.destination_origin!r}"
            )
            raise ConfigurationError(
                msg, context={"destination_origin": self.destination_origin}
            )

        # Stored without trailing slash so origin + path never doubles it
        object.__setattr__(
            self, "destination_origin", self.destination_origin.rstrip("/")
        )

    def matches(self, path: str) -> bool:
        """Whether this rule applies to an inbound path (query excluded)."""
        return path.startswith(self.match_prefix)


class PathRewriteRouter:
    """Ordered, first-match-wins list of rewrite rules.

    Args:
        rules: Rules in priority order.
    """

    def __init__(self, rules: Iterable[RewriteRule]) -> None:
        self.rules: tuple[RewriteRule, ...] = tuple(rules)

    @classmethod
    def from_config(cls, config: EdgeConfig) -> "PathRewriteRouter":
        """Build a router from edge configuration.

        Raises:
            ConfigurationError: If any configured rule is malformed.
        """
        return cls(_rule_from_config(rule) for rule in config.rewrite_rules)

    def match(self, path: str) -> RewriteRule | None:
        """Return the first rule matching ``path``, if any."""
        for rule in self.rules:
            if rule.matches(path):
                return rule
        return None

    def resolve(self, target: str) -> str | None:
        """Map an inbound request target to its forwarding URL.

        Args:
            target: Inbound path, optionally followed by ``?query``.

        Returns:
            str | None: Absolute URL to forward to, or None to serve locally.
        """
        path = target.split("?", 1)[0]
        rule = self.match(path)
        if rule is None:
            return None
        return rule.destination_origin + target


def _rule_from_config(rule: RewriteRuleConfig) -> RewriteRule:
    return RewriteRule(
        match_prefix=rule.match_prefix,
        destination_origin=rule.destination_origin,
    )
