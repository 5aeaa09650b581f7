"""
Reference resolution — turn ref:// tokens into secret values.

For every referenced entry the engine queries backends through project
namespaces (trying the profile namespace first when a profile is
active), in declaration order, and the first backend that has the key
wins. Values that are themselves references are followed up to
MAX_REF_DEPTH hops. Failures are recorded per key; one bad reference
never stops the others.

Nothing resolved here outlives the call: the lookup cache lives on the
stack of a single resolve() pass.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional

from .backends.namespaced import NamespacedBackend
from .backends.registry import Registry
from .envfile import Entry, Env
from .errors import (
    ConfigurationError,
    EnvrefError,
    NotFoundError,
    PartialResolutionError,
    ResolutionError,
)
from .ref import Reference, is_ref

logger = logging.getLogger("envref.resolve")

MAX_REF_DEPTH = 8


@dataclass(frozen=True)
class UnresolvedKey:
    """A key whose reference could not be resolved.

    Attributes:
        key: Environment variable name.
        ref: The token as written in the env file.
        cause: Why resolution failed.
    """

    key: str
    ref: str
    cause: BaseException

    def __str__(self) -> str:
        return f"{self.key}: failed to resolve {self.ref}: {self.cause}"


@dataclass(frozen=True)
class ResolutionResult:
    """Output of one resolution pass. Entries keep env file order."""

    entries: tuple[Entry, ...] = ()
    errors: tuple[UnresolvedKey, ...] = field(default=())

    @property
    def resolved(self) -> bool:
        return not self.errors

    def as_dict(self) -> dict[str, str]:
        return {e.key: e.value for e in self.entries}

    def check(self, strict: bool = False) -> None:
        """Escalate per-key failures to a single error when required.

        Raises:
            PartialResolutionError: In strict mode when any key failed, or
                in any mode when every reference failed.
        """
        if not self.errors:
            return
        if strict:
            raise PartialResolutionError(
                self.errors,
                f"{len(self.errors)} reference(s) could not be resolved "
                "(strict mode: no output produced)",
            )
        ref_count = sum(1 for e in self.entries if e.was_ref)
        if len(self.errors) >= ref_count:
            raise PartialResolutionError(
                self.errors, f"none of the {ref_count} reference(s) could be resolved"
            )


class _Resolver:
    """Lookup machinery for one pass over one registry."""

    def __init__(
        self,
        registry: Registry,
        project: str,
        profile: Optional[str],
        max_depth: int,
    ):
        self.max_depth = max_depth
        self.project_views = {
            b.name: NamespacedBackend(b, project) for b in registry.backends()
        }
        self.profile_views = (
            {b.name: NamespacedBackend(b, project, profile) for b in registry.backends()}
            if profile
            else None
        )
        self._cache: dict[str, tuple[Optional[str], Optional[EnvrefError]]] = {}

    def lookup(self, token: str) -> str:
        """Resolve *token*, following nested references.

        Raises:
            EnvrefError: Invalid token, not found, vendor failure, cycle or
                depth overrun.
        """
        if token not in self._cache:
            try:
                self._cache[token] = (self._follow(token), None)
            except EnvrefError as exc:
                self._cache[token] = (None, exc)

        value, error = self._cache[token]
        if error is not None:
            raise error
        return value

    def _follow(self, token: str) -> str:
        chain: list[str] = []
        current = token
        while True:
            if current in chain:
                raise ResolutionError(
                    "reference cycle: " + " -> ".join([*chain, current])
                )
            if len(chain) > self.max_depth:
                raise ResolutionError(
                    f"nested reference depth exceeded (max {self.max_depth})"
                )
            chain.append(current)

            value = self._fetch(Reference.parse(current))
            if not is_ref(value):
                return value
            logger.debug("Following nested reference from %s", current)
            current = value

    def _fetch(self, parsed: Reference) -> str:
        if self.profile_views is not None:
            try:
                return self._fetch_from(parsed, self.profile_views)
            except NotFoundError:
                logger.debug("%s not in profile namespace, trying project", parsed.path)
        return self._fetch_from(parsed, self.project_views)

    @staticmethod
    def _fetch_from(parsed: Reference, views: dict[str, NamespacedBackend]) -> str:
        direct = views.get(parsed.backend)
        if direct is not None:
            return direct.get(parsed.path)

        if not views:
            raise ResolutionError("no backends registered")

        last_missing: Optional[NotFoundError] = None
        for view in views.values():
            try:
                return view.get(parsed.path)
            except NotFoundError as exc:
                last_missing = exc
        raise last_missing


def resolve(
    env: Env,
    registry: Registry,
    project: str,
    profile: Optional[str] = None,
    max_depth: int = MAX_REF_DEPTH,
) -> ResolutionResult:
    """Resolve every reference in *env*.

    Args:
        env: Merged env layers.
        registry: Backends in fallback order.
        project: Project namespace for lookups.
        profile: Optional profile namespace, tried before the project one.
        max_depth: Maximum nested-reference hops per key.

    Returns:
        ResolutionResult with entries in env order. Unresolved entries keep
        their token as value.

    Raises:
        ConfigurationError: If project or profile names are unusable.
    """
    if not project:
        raise ConfigurationError("project name must not be empty")

    if not env.has_refs():
        return ResolutionResult(entries=tuple(env.all()))

    resolver = _Resolver(registry, project, profile, max_depth)
    entries: list[Entry] = []
    errors: list[UnresolvedKey] = []

    for entry in env:
        if not entry.was_ref:
            entries.append(entry)
            continue
        try:
            value = resolver.lookup(entry.value)
        except EnvrefError as exc:
            logger.debug("Could not resolve %s: %s", entry.key, exc)
            errors.append(UnresolvedKey(key=entry.key, ref=entry.value, cause=exc))
            entries.append(entry)
            continue
        entries.append(Entry(key=entry.key, value=value, was_ref=True))

    logger.info(
        "Resolved %d of %d reference(s)",
        len(env.refs()) - len(errors),
        len(env.refs()),
    )
    return ResolutionResult(entries=tuple(entries), errors=tuple(errors))
