"""
Configuration for uitfkraken.

- load_config(path, overrides):   shipped YAML + optional user YAML + dotlist
- make_view(cfg, path):           read-only subtree (e.g. "sources.listing")
- ensure_config(cfg):             fail fast with ConfigError on missing keys
- PipelineConfig.from_omegaconf:  typed, frozen settings threaded through
                                  every pipeline stage

Nothing in the package reads global state; entry points build one
`PipelineConfig` and pass it down.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from importlib.resources import files
from pathlib import Path
from types import MappingProxyType
from typing import Any, Iterable, Mapping, Sequence, cast

from omegaconf import DictConfig, OmegaConf

from uitfkraken.catalog.mappings import (
    DEFAULT_BANK_ALIASES,
    DEFAULT_MANUAL_OVERRIDES,
    DEFAULT_WEBSITE_TO_BANK,
    ManualOverride,
)
from uitfkraken.catalog.normalize import NameNormalizer
from uitfkraken.common.errors import ConfigError

SHIPPED_CONFIG = "default.yaml"

_REQUIRED: dict[str, tuple[str, ...]] = {
    "paths": ("output_dir", "cache_dir"),
    "http": ("user_agent", "timeout", "rate_seconds"),
    "pipeline": ("page_size", "lookback"),
    "sources.listing": (
        "search_url",
        "detail_url",
        "queries",
        "countries",
        "types",
        "fund_kinds",
        "field_patterns",
    ),
    "sources.fund_info": ("url",),
    "sources.series": ("url",),
}


def load_config(
    path: Path | str | None = None,
    overrides: Sequence[str] = (),
) -> DictConfig:
    """Compose the shipped defaults, an optional user YAML and dotlist overrides."""
    shipped = files("uitfkraken.config").joinpath(SHIPPED_CONFIG).read_text(
        encoding="utf-8"
    )
    layers: list[Any] = [OmegaConf.create(shipped)]
    if path is not None:
        layers.append(OmegaConf.load(Path(path)))
    if overrides:
        layers.append(OmegaConf.from_dotlist(list(overrides)))
    return cast(DictConfig, OmegaConf.merge(*layers))


def make_view(cfg: DictConfig, path: str, *, resolve: bool = True) -> DictConfig:
    """Read-only view rooted at `path` (dot-separated)."""
    node = OmegaConf.select(cfg, path, throw_on_missing=True)
    if node is None:
        raise ConfigError(f"Missing config node: {path}")
    if not isinstance(node, DictConfig):
        raise ConfigError(f"Config node is not a mapping: {path}")
    if resolve:
        node = OmegaConf.create(OmegaConf.to_container(node, resolve=True))
    else:
        node = node.copy()
    OmegaConf.set_readonly(node, True)
    return node


def _must_have(d: DictConfig, path: str, keys: Iterable[str]) -> None:
    missing = [k for k in keys if k not in d]
    if missing:
        raise ConfigError(f"Missing keys at {path}: {', '.join(missing)}")


def ensure_config(cfg: DictConfig) -> None:
    """Validate that every key the pipeline reads is present."""
    for path, keys in _REQUIRED.items():
        _must_have(make_view(cfg, path), path, keys)
    if int(cfg.pipeline.page_size) <= 0:
        raise ConfigError("pipeline.page_size must be positive")
    if float(cfg.http.timeout) <= 0:
        raise ConfigError("http.timeout must be positive")


def _pairs(
    cfg: DictConfig, path: str, key_field: str, value_field: str
) -> dict[str, str]:
    """Read a list of `{key_field: ..., value_field: ...}` entries into a dict."""
    node = OmegaConf.select(cfg, path, default=None)
    if node is None:
        return {}
    out: dict[str, str] = {}
    for i, entry in enumerate(node):
        if key_field not in entry or value_field not in entry:
            raise ConfigError(
                f"{path}[{i}] needs '{key_field}' and '{value_field}' fields"
            )
        out[str(entry[key_field])] = str(entry[value_field])
    return out


def _overrides(cfg: DictConfig) -> tuple[ManualOverride, ...]:
    path = "mappings.manual_overrides"
    node = OmegaConf.select(cfg, path, default=None)
    if node is None:
        return ()
    out: list[ManualOverride] = []
    for i, entry in enumerate(node):
        if "fund_name" not in entry or "symbol" not in entry:
            raise ConfigError(f"{path}[{i}] needs 'fund_name' and 'symbol'")
        bank = entry.get("bank")
        out.append(
            ManualOverride(
                fund_name=str(entry["fund_name"]),
                symbol=str(entry["symbol"]),
                bank=None if bank is None else str(bank),
            )
        )
    return tuple(out)


def _strings(cfg: DictConfig, path: str) -> tuple[str, ...]:
    node = OmegaConf.select(cfg, path, default=None)
    if node is None:
        return ()
    return tuple(str(v) for v in node)


def _optional(cfg: DictConfig, path: str) -> str | None:
    value = OmegaConf.select(cfg, path, default=None)
    return None if value is None else str(value)


def _frozen(d: Mapping[str, str]) -> Mapping[str, str]:
    return MappingProxyType(dict(d))


@dataclass(frozen=True)
class PipelineConfig:
    """Everything a pipeline run needs, resolved and typed."""

    output_dir: Path
    cache_dir: Path
    page_size: int = 20
    lookback: str = "5_YEAR"
    timeout: float = 30.0
    rate_seconds: float = 0.0
    user_agent: str = "uitfkraken/0.3"

    search_url: str = ""
    detail_url: str = ""
    fund_info_url: str = ""
    series_url: str = ""

    queries: tuple[str, ...] = ()
    countries: tuple[str, ...] = ()
    types: tuple[str, ...] = ()
    fund_kinds: tuple[str, ...] = ("UITF",)
    field_patterns: Mapping[str, str] = field(default_factory=dict)

    website_to_bank: Mapping[str, str] = field(
        default_factory=lambda: _frozen(DEFAULT_WEBSITE_TO_BANK)
    )
    bank_aliases: Mapping[str, str] = field(
        default_factory=lambda: _frozen(DEFAULT_BANK_ALIASES)
    )
    manual_overrides: tuple[ManualOverride, ...] = DEFAULT_MANUAL_OVERRIDES
    normalizer: NameNormalizer = field(default_factory=NameNormalizer)

    @classmethod
    def from_omegaconf(cls, cfg: DictConfig) -> "PipelineConfig":
        ensure_config(cfg)
        listing = make_view(cfg, "sources.listing")

        website_to_bank = {**DEFAULT_WEBSITE_TO_BANK}
        website_to_bank.update(
            _pairs(cfg, "mappings.website_to_bank", "website", "bank")
        )
        bank_aliases = {**DEFAULT_BANK_ALIASES}
        bank_aliases.update(_pairs(cfg, "mappings.bank_aliases", "alias", "bank"))
        overrides = DEFAULT_MANUAL_OVERRIDES + _overrides(cfg)

        normalizer = NameNormalizer().extended(
            preserve=_strings(cfg, "normalizer.preserve"),
            replacements=_pairs(cfg, "normalizer.replacements", "token", "value"),
            removals=_strings(cfg, "normalizer.removals"),
            phrases=_strings(cfg, "normalizer.phrases"),
            trailing_descriptor=_optional(cfg, "normalizer.trailing_descriptor"),
        )

        return cls(
            output_dir=Path(str(cfg.paths.output_dir)),
            cache_dir=Path(str(cfg.paths.cache_dir)),
            page_size=int(cfg.pipeline.page_size),
            lookback=str(cfg.pipeline.lookback),
            timeout=float(cfg.http.timeout),
            rate_seconds=float(cfg.http.rate_seconds),
            user_agent=str(cfg.http.user_agent),
            search_url=str(listing.search_url),
            detail_url=str(listing.detail_url),
            fund_info_url=str(cfg.sources.fund_info.url),
            series_url=str(cfg.sources.series.url),
            queries=tuple(str(q) for q in listing.queries),
            countries=tuple(str(c) for c in listing.countries),
            types=tuple(str(t) for t in listing.types),
            fund_kinds=tuple(str(k) for k in listing.fund_kinds),
            field_patterns=_frozen(
                {str(k): str(v) for k, v in listing.field_patterns.items()}
            ),
            website_to_bank=_frozen(website_to_bank),
            bank_aliases=_frozen(bank_aliases),
            manual_overrides=overrides,
            normalizer=normalizer,
        )


__all__ = [
    "PipelineConfig",
    "ensure_config",
    "load_config",
    "make_view",
]
