from __future__ import annotations

import importlib
import os
from dataclasses import dataclass
from importlib import util
from typing import Dict, Tuple

from grounding.settings import settings


@dataclass
class ReadinessStatus:
    ready: bool
    checks: Dict[str, Tuple[bool, str | None]]


_resource = importlib.import_module("resource") if util.find_spec("resource") else None

_PROVIDER_KEYS = {
    "serper": "serper_api_key",
    "newsapi": "newsapi_api_key",
}


class ReadinessChecker:
    def evaluate(self) -> ReadinessStatus:
        checks: Dict[str, Tuple[bool, str | None]] = {}

        checks["search_provider"] = self._check_search_provider()
        checks["system_resources"] = self._check_system_resources()

        ready = all(result for result, _ in checks.values())
        return ReadinessStatus(ready=ready, checks=checks)

    def _check_search_provider(self) -> Tuple[bool, str | None]:
        provider = (settings.search_provider or "").strip().lower()
        if not provider or provider == "none":
            return True, "fallback_search_disabled"
        key_field = _PROVIDER_KEYS.get(provider)
        if key_field is None:
            return False, f"unknown search provider '{provider}'"
        if getattr(settings, key_field):
            return True, None
        return False, f"{key_field.upper()} missing"

    def _check_system_resources(self) -> Tuple[bool, str | None]:
        cpu_ok, cpu_detail = _cpu_usage_ok(settings.readiness_cpu_threshold)
        mem_ok, mem_detail = _memory_usage_ok(settings.readiness_memory_threshold_mb)

        if cpu_ok and mem_ok:
            return True, None

        detail_parts = []
        if not cpu_ok:
            detail_parts.append(cpu_detail)
        if not mem_ok:
            detail_parts.append(mem_detail)
        return False, "; ".join(part for part in detail_parts if part)


def _cpu_usage_ok(limit_percent: int) -> Tuple[bool, str | None]:
    try:
        load1, _, _ = os.getloadavg()
    except (OSError, AttributeError):
        return True, "loadavg_unavailable"
    usage_percent = (load1 / (os.cpu_count() or 1)) * 100
    return usage_percent <= limit_percent, f"cpu_usage={usage_percent:.2f}"


def _memory_usage_ok(limit_mb: int) -> Tuple[bool, str | None]:
    if _resource is None:
        return True, "memory_usage_unavailable"
    usage = _resource.getrusage(_resource.RUSAGE_SELF)
    used_mb = getattr(usage, "ru_maxrss", 0) / 1024
    return used_mb <= limit_mb, f"memory_used_mb={used_mb:.2f}"


_checker: ReadinessChecker | None = None


def get_readiness_checker() -> ReadinessChecker:
    global _checker
    if _checker is None:
        _checker = ReadinessChecker()
    return _checker
