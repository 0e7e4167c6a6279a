"""
Model management across all configured hosts.

Each operation fans out concurrently over hosts and returns a report
keyed by host name. A failing host is reported, never fatal for the
others.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, List, Sequence

from .models import Host
from .ollama_client import OllamaClient

logger = logging.getLogger(__name__)


@dataclass
class HostReport:
    """Outcome of one management operation on one host."""
    host: str
    done: List[str] = field(default_factory=list)
    kept: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)


@dataclass
class HostModels:
    """Catalogue of one host with its loaded models marked."""
    host: str
    models: List[str] = field(default_factory=list)
    loaded: List[str] = field(default_factory=list)
    error: str = ""


async def _fan_out(
    hosts: Sequence[Host],
    op: Callable[[Host], Awaitable[HostReport]],
) -> Dict[str, HostReport]:
    ollama_hosts = [h for h in hosts if h.type == "ollama"]
    for h in hosts:
        if h.type != "ollama":
            logger.warning(f"Skipping {h.name}: unsupported host type {h.type}")

    results = await asyncio.gather(*(op(h) for h in ollama_hosts), return_exceptions=True)

    reports: Dict[str, HostReport] = {}
    for host, result in zip(ollama_hosts, results):
        if isinstance(result, Exception):
            logger.error(f"{host.name}: {result}")
            reports[host.name] = HostReport(host=host.name, errors=[str(result)])
        else:
            reports[host.name] = result
    return reports


async def list_models(client: OllamaClient, hosts: Sequence[Host]) -> List[HostModels]:
    """Catalogue per host, sorted by host name."""

    async def one(host: Host) -> HostModels:
        try:
            loaded = await client.list_loaded(host)
            models = await client.list_tags(host)
        except Exception as e:
            logger.error(f"Could not list models on {host.name}: {e}")
            return HostModels(host=host.name, error=str(e))
        return HostModels(host=host.name, models=models, loaded=loaded)

    listings = await asyncio.gather(*(one(h) for h in hosts))
    return sorted(listings, key=lambda m: m.host)


SAMPLING_SETTINGS = ("temperature", "top_p", "top_k", "repeat_penalty", "min_p")


@dataclass
class ModelSettings:
    """Sampling settings of one model as declared in its modelfile."""
    model: str
    settings: Dict[str, str] = field(default_factory=dict)


@dataclass
class HostParameters:
    host: str
    models: List[ModelSettings] = field(default_factory=list)
    error: str = ""


def extract_settings(parameters: str) -> Dict[str, str]:
    """
    Pick the sampling settings out of an /api/show parameters block.

    Accepts "key value", "parameter key value" and "key=value" lines,
    case-insensitively. The first occurrence of a key wins; missing keys
    are reported as "n/a".
    """
    found = {key: "n/a" for key in SAMPLING_SETTINGS}

    for line in parameters.splitlines():
        line = line.strip().lower()
        if not line:
            continue

        if "=" in line:
            key, _, value = line.partition("=")
            key, value = key.strip(), value.strip()
        else:
            fields = line.split()
            if len(fields) < 2:
                continue
            if fields[0] == "parameter" and len(fields) >= 3:
                key, value = fields[1], fields[2]
            else:
                key, value = fields[0], fields[1]

        if key in found and found[key] == "n/a" and value:
            found[key] = value

    return found


async def model_parameters(client: OllamaClient, hosts: Sequence[Host]) -> List[HostParameters]:
    """Sampling settings of every installed model, per host in config order."""

    async def one(host: Host) -> HostParameters:
        if host.type != "ollama":
            return HostParameters(host=host.name, error=f"listing model parameters is not supported for {host.type}")
        try:
            names = await client.list_tags(host)
            infos = await asyncio.gather(*(client.show(host, name) for name in names))
        except Exception as e:
            logger.error(f"Could not get model parameters from {host.name}: {e}")
            return HostParameters(host=host.name, error=str(e))
        return HostParameters(
            host=host.name,
            models=[ModelSettings(model=n, settings=extract_settings(i.parameters)) for n, i in zip(names, infos)],
        )

    return list(await asyncio.gather(*(one(h) for h in hosts)))


async def pull_models(client: OllamaClient, hosts: Sequence[Host]) -> Dict[str, HostReport]:
    """Pull every configured model onto its host."""

    async def one(host: Host) -> HostReport:
        report = HostReport(host=host.name)
        for model in host.models:
            logger.info(f"Pulling {model} on {host.name}")
            try:
                await client.pull(host, model)
                report.done.append(model)
            except Exception as e:
                logger.error(f"Error pulling {model} on {host.name}: {e}")
                report.errors.append(f"{model}: {e}")
        return report

    return await _fan_out(hosts, one)


async def delete_models(client: OllamaClient, hosts: Sequence[Host]) -> Dict[str, HostReport]:
    """Delete installed models that are not in the host's configured list."""

    async def one(host: Host) -> HostReport:
        report = HostReport(host=host.name)
        keep = set(host.models)
        for model in await client.list_tags(host):
            if model in keep:
                report.kept.append(model)
                continue
            logger.info(f"Deleting {model} on {host.name}")
            try:
                await client.delete(host, model)
                report.done.append(model)
            except Exception as e:
                logger.error(f"Error deleting {model} on {host.name}: {e}")
                report.errors.append(f"{model}: {e}")
        return report

    return await _fan_out(hosts, one)


async def unload_models(client: OllamaClient, hosts: Sequence[Host]) -> Dict[str, HostReport]:
    """Unload whatever each host currently has loaded."""

    async def one(host: Host) -> HostReport:
        report = HostReport(host=host.name)
        for model in await client.list_loaded(host):
            logger.info(f"Unloading {model} on {host.name}")
            try:
                await client.unload(host, model)
                report.done.append(model)
            except Exception as e:
                logger.error(f"Error unloading {model} on {host.name}: {e}")
                report.errors.append(f"{model}: {e}")
        return report

    return await _fan_out(hosts, one)


async def sync_models(
    client: OllamaClient, hosts: Sequence[Host]
) -> Dict[str, Dict[str, HostReport]]:
    """Delete unconfigured models, then pull configured ones."""
    deleted = await delete_models(client, hosts)
    pulled = await pull_models(client, hosts)
    return {"delete": deleted, "pull": pulled}
